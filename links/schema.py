# hackernews-graphql -- links/schema.py
#
# Copyright © 2017 Sean Bolton.
#
# Permission is hereby granted, free of charge, to any person obtaining
# a copy of this software and associated documentation files (the
# "Software"), to deal in the Software without restriction, including
# without limitation the rights to use, copy, modify, merge, publish,
# distribute, sublicense, and/or sell copies of the Software, and to
# permit persons to whom the Software is furnished to do so, subject to
# the following conditions:
#
# The above copyright notice and this permission notice shall be
# included in all copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND,
# EXPRESS OR IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF
# MERCHANTABILITY, FITNESS FOR A PARTICULAR PURPOSE AND
# NONINFRINGEMENT. IN NO EVENT SHALL THE AUTHORS OR COPYRIGHT HOLDERS BE
# LIABLE FOR ANY CLAIM, DAMAGES OR OTHER LIABILITY, WHETHER IN AN ACTION
# OF CONTRACT, TORT OR OTHERWISE, ARISING FROM, OUT OF OR IN CONNECTION
# WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE SOFTWARE.

import logging

import django_filters
import graphene
from asgiref.sync import sync_to_async
from django.db.models import Q
from graphene_django import DjangoObjectType

from hackernews.pubsub import NEW_LINK, NEW_VOTE
from links.models import LinkModel, VoteModel
from users.schema import User


logger = logging.getLogger(__name__)


# ========== Vote ==========

class Vote(DjangoObjectType):
    class Meta:
        model = VoteModel
        fields = ('id', )

    # Declared by hand rather than converted by graphene-django, whose relation fields re-query
    # through get_node().
    link = graphene.Field(lambda: Link, required=True)
    user = graphene.Field(User, required=True)


# largest value a BigAutoField primary key can hold
MAX_LINK_ID = 2 ** 63 - 1


class CreateVote(graphene.Mutation):
    # mutation VoteMutation($linkId: ID!) {
    #   vote(linkId: $linkId) {
    #     id
    #     link { votes { id } }
    #     user { id }
    #   }
    # }

    class Arguments:
        link_id = graphene.ID(required=True)

    Output = Vote

    def mutate(root, info, link_id):
        context = info.context
        context.verify_auth()
        try:
            link_pk = int(link_id)
        except ValueError:
            raise Exception('Requested link not found!')
        if not 0 < link_pk <= MAX_LINK_ID:
            raise Exception('Requested link not found!')
        # Check-then-insert: two concurrent votes can both pass the check, and then the loser
        # fails on the database's unique constraint instead.
        if VoteModel.objects.using(context.db).filter(user=context.user, link_id=link_pk).exists():
            raise Exception('Already voted for link: {}'.format(link_id))
        link = LinkModel.objects.using(context.db).filter(pk=link_pk).first()
        if link is None:
            raise Exception('Requested link not found!')

        vote = VoteModel(user=context.user, link=link)
        vote.save(using=context.db)
        logger.info('user %s voted for link %s', context.user.pk, link.pk)
        context.pubsub.publish(NEW_VOTE, created_vote=vote.pk)

        return vote


# ========== Link ==========

class Link(DjangoObjectType):
    class Meta:
        model = LinkModel
        fields = ('id', 'created_at', 'description', 'url')

    posted_by = graphene.Field(User)
    votes = graphene.List(graphene.NonNull(Vote), required=True)

    def resolve_votes(self, info):
        return self.votes.all()


class Sort(graphene.Enum):
    """Sort direction for LinkOrderByInput fields."""
    # The left-hand side is the over-the-wire enum value, the right-hand side the prefix Django's
    # order_by() wants for that direction.
    asc = ''
    desc = '-'


class LinkOrderByInput(graphene.InputObjectType):
    description = graphene.InputField(Sort)
    url = graphene.InputField(Sort)
    created_at = graphene.InputField(Sort)


# order_by fields, in the order they take precedence
LINK_ORDER_FIELDS = ('description', 'url', 'created_at')


def link_ordering(order_by):
    """Translate a LinkOrderByInput into order_by() arguments, with 'id' to break ties."""
    ordering = []
    for field in LINK_ORDER_FIELDS:
        direction = order_by.get(field)
        if direction is not None:
            # graphene hands resolvers the enum member; its value is the order_by() prefix
            ordering.append(direction.value + field)
    ordering.append('id')
    return ordering


class LinkFilterSet(django_filters.FilterSet):
    """Matches links whose description or url contains the filter text."""
    text = django_filters.CharFilter(method='filter_text')

    class Meta:
        model = LinkModel
        fields = []

    def filter_text(self, queryset, name, value):
        return queryset.filter(Q(description__contains=value) | Q(url__contains=value))


class Feed(graphene.ObjectType):
    links = graphene.List(graphene.NonNull(Link), required=True)
    count = graphene.Int(required=True)


class CreateLink(graphene.Mutation):
    # mutation PostMutation($url: String!, $description: String!) {
    #   post(url: $url, description: $description) {
    #     id
    #     createdAt
    #     url
    #     description
    #   }
    # }

    class Arguments:
        url = graphene.String(required=True)
        description = graphene.String(required=True)

    Output = Link

    def mutate(root, info, url, description):
        context = info.context
        context.verify_auth()
        link = LinkModel(
            url=url,
            description=description,
            posted_by=context.user,
        )
        link.save(using=context.db)
        logger.info('user %s posted link %s', context.user.pk, link.pk)
        context.pubsub.publish(NEW_LINK, created_link=link.pk)

        return link


# ========== subscriptions ==========

# Events carry primary keys (see hackernews.pubsub). The row is loaded when the event arrives;
# hackernews.subscriptions resolves the rest of the selection off the event loop.

@sync_to_async
def load_link(pk, using):
    return (LinkModel.objects.using(using)
            .select_related('posted_by')
            .filter(pk=pk).first())


@sync_to_async
def load_vote(pk, using):
    return (VoteModel.objects.using(using)
            .select_related('link', 'user')
            .filter(pk=pk).first())


class Subscription(object):
    new_link = graphene.Field(Link)
    new_vote = graphene.Field(Vote)

    # These return the subscription rather than being async generators themselves, so that the
    # subscriber is registered by the time the subscribe() call completes.
    async def subscribe_new_link(root, info):
        db = info.context.db
        return await info.context.pubsub.subscribe(
            NEW_LINK, transform=lambda payload: load_link(payload['created_link'], db))

    async def subscribe_new_vote(root, info):
        db = info.context.db
        return await info.context.pubsub.subscribe(
            NEW_VOTE, transform=lambda payload: load_vote(payload['created_vote'], db))


# ========== schema structure ==========

class Query(object):
    info = graphene.String(required=True)
    feed = graphene.Field(
        Feed,
        required=True,
        filter=graphene.String(),
        skip=graphene.Int(),
        take=graphene.Int(),
        order_by=graphene.Argument(LinkOrderByInput),
    )

    def resolve_info(self, info):
        return 'This is the API of a Hackernews Clone'

    def resolve_feed(self, info, filter=None, skip=None, take=None, order_by=None):
        if (skip is not None and skip < 0) or (take is not None and take < 0):
            raise Exception('skip and take must not be negative')
        qs = LinkModel.objects.using(info.context.db).select_related('posted_by')
        qs = LinkFilterSet(data={'text': filter}, queryset=qs).qs
        # count is of all matching links, before pagination
        count = qs.count()
        if order_by:
            qs = qs.order_by(*link_ordering(order_by))
        start = skip or 0
        if take is not None:
            qs = qs[start:start + take]
        elif start:
            qs = qs[start:]
        return Feed(links=qs, count=count)


class Mutation(object):
    post = CreateLink.Field()
    vote = CreateVote.Field()
