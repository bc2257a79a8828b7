# hackernews-graphql -- links/tests.py
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

import asyncio
import datetime

from asgiref.sync import sync_to_async
from channels.layers import InMemoryChannelLayer
from django.test import TestCase

import graphene
from graphql import ExecutionResult

from hackernews.context import GraphQLContext
from hackernews.pubsub import NEW_LINK, NEW_VOTE, PubSub
from hackernews.schema import Mutation, Query, schema
from hackernews.subscriptions import subscribe
from hackernews.utils import format_graphql_errors
from links.models import LinkModel, VoteModel
from users.tests import create_test_user


# ========== utility functions ==========

class RecordingPubSub(PubSub):
    """A PubSub on its own channel layer, which remembers everything published through it."""

    def __init__(self):
        super().__init__(layer=InMemoryChannelLayer())
        self.published = []

    def publish(self, topic, **payload):
        self.published.append((topic, payload))
        super().publish(topic, **payload)


def create_feed_test_data():
    """Create three links, with description, url, and created_at each having a different sort
    order.
    """
    def dt(epoch):
        return datetime.datetime.fromtimestamp(epoch, tz=datetime.timezone.utc)
    link = LinkModel(description='Description C', url='http://a.com')
    link.save()  # give 'auto_now_add' a chance to do its thing
    link.created_at = dt(1000000000)  # new time stamp, least recent
    link.save()
    link = LinkModel(description='Description B', url='http://b.com')
    link.save()
    link.created_at = dt(1000000400)  # most recent
    link.save()
    link = LinkModel(description='Description A', url='http://c.com')
    link.save()
    link.created_at = dt(1000000200)
    link.save()


def feed_urls(result):
    return [link['url'] for link in result.data['feed']['links']]


# ========== GraphQL schema general tests ==========

class RootTests(TestCase):
    def test_root_types(self):
        """Make sure the root types are 'Query', 'Mutation' and 'Subscription'."""
        query = '''
          query RootTypesQuery {
            __schema {
              queryType { name }
              mutationType { name }
              subscriptionType { name }
            }
          }
        '''
        expected = {
            '__schema': {
                'queryType': {'name': 'Query'},
                'mutationType': {'name': 'Mutation'},
                'subscriptionType': {'name': 'Subscription'},
            }
        }
        result = schema.execute(query)
        self.assertIsNone(result.errors, msg=format_graphql_errors(result.errors))
        self.assertEqual(result.data, expected, msg='\n'+repr(expected)+'\n'+repr(result.data))

    def test_info(self):
        result = graphene.Schema(query=Query).execute('query { info }')
        self.assertIsNone(result.errors, msg=format_graphql_errors(result.errors))
        expected = {'info': 'This is the API of a Hackernews Clone'}
        self.assertEqual(result.data, expected, msg='\n'+repr(expected)+'\n'+repr(result.data))


# ========== feed query tests ==========

class FeedTests(TestCase):
    def setUp(self):
        create_feed_test_data()
        self.schema = graphene.Schema(query=Query)
        self.query = '''
          query FeedTest($filter: String, $skip: Int, $take: Int, $orderBy: LinkOrderByInput) {
            feed(filter: $filter, skip: $skip, take: $take, orderBy: $orderBy) {
              count
              links { url }
            }
          }
        '''

    def execute(self, **variables):
        result = self.schema.execute(self.query, variable_values=variables,
                                     context_value=GraphQLContext())
        self.assertIsNone(result.errors, msg=format_graphql_errors(result.errors))
        return result

    def test_feed(self):
        result = self.execute()
        expected = {
            'feed': {
                'count': 3,
                'links': [
                    {'url': 'http://a.com'},
                    {'url': 'http://b.com'},
                    {'url': 'http://c.com'},
                ]
            }
        }
        self.assertEqual(result.data, expected, msg='\n'+repr(expected)+'\n'+repr(result.data))

    def test_feed_ordered_by(self):
        # descending order of creation: b.com, c.com, a.com
        result = self.execute(orderBy={'createdAt': 'desc'})
        self.assertEqual(feed_urls(result), ['http://b.com', 'http://c.com', 'http://a.com'])
        # ascending order on description: c.com, b.com, a.com
        result = self.execute(orderBy={'description': 'asc'})
        self.assertEqual(feed_urls(result), ['http://c.com', 'http://b.com', 'http://a.com'])
        result = self.execute(orderBy={'url': 'desc'})
        self.assertEqual(feed_urls(result), ['http://c.com', 'http://b.com', 'http://a.com'])

    def test_feed_filter(self):
        """filter text matches either the description or the url"""
        result = self.execute(filter='Description B')
        self.assertEqual(result.data['feed']['count'], 1)
        self.assertEqual(feed_urls(result), ['http://b.com'])
        result = self.execute(filter='c.com')
        self.assertEqual(result.data['feed']['count'], 1)
        self.assertEqual(feed_urls(result), ['http://c.com'])
        result = self.execute(filter='Description')
        self.assertEqual(result.data['feed']['count'], 3)
        result = self.execute(filter='no such link')
        expected = {'feed': {'count': 0, 'links': []}}
        self.assertEqual(result.data, expected, msg='\n'+repr(expected)+'\n'+repr(result.data))

    def test_feed_empty_filter(self):
        result = self.execute(filter='')
        self.assertEqual(result.data['feed']['count'], 3)

    def test_feed_pagination(self):
        """skip and take page through the ordered links, count stays the total"""
        result = self.execute(orderBy={'url': 'asc'}, take=2)
        self.assertEqual(result.data['feed']['count'], 3)
        self.assertEqual(feed_urls(result), ['http://a.com', 'http://b.com'])
        result = self.execute(orderBy={'url': 'asc'}, skip=2, take=2)
        self.assertEqual(result.data['feed']['count'], 3)
        self.assertEqual(feed_urls(result), ['http://c.com'])
        result = self.execute(orderBy={'url': 'asc'}, skip=1)
        self.assertEqual(feed_urls(result), ['http://b.com', 'http://c.com'])
        result = self.execute(take=0)
        self.assertEqual(feed_urls(result), [])

    def test_feed_filtered_pagination(self):
        result = self.execute(filter='Description', orderBy={'createdAt': 'asc'}, skip=1, take=1)
        self.assertEqual(result.data['feed']['count'], 3)
        self.assertEqual(feed_urls(result), ['http://c.com'])

    def test_feed_negative_pagination(self):
        result = self.schema.execute(self.query, variable_values={'skip': -1},
                                     context_value=GraphQLContext())
        self.assertIsNotNone(result.errors, msg='feed should have failed: negative skip')
        self.assertIn('skip and take must not be negative', repr(result.errors))
        result = self.schema.execute(self.query, variable_values={'take': -1},
                                     context_value=GraphQLContext())
        self.assertIsNotNone(result.errors, msg='feed should have failed: negative take')
        self.assertIn('skip and take must not be negative', repr(result.errors))

    def test_feed_relations(self):
        """postedBy and votes resolve on feed links"""
        user = create_test_user()
        link = LinkModel.objects.create(description='Posted', url='http://d.com', posted_by=user)
        VoteModel.objects.create(link=link, user=user)
        query = '''
          query FeedRelationsTest {
            feed(filter: "d.com") {
              links {
                postedBy { name }
                votes { user { name } }
              }
            }
          }
        '''
        expected = {
            'feed': {
                'links': [
                    {
                        'postedBy': {'name': 'Test User'},
                        'votes': [{'user': {'name': 'Test User'}}],
                    }
                ]
            }
        }
        result = self.schema.execute(query, context_value=GraphQLContext())
        self.assertIsNone(result.errors, msg=format_graphql_errors(result.errors))
        self.assertEqual(result.data, expected, msg='\n'+repr(expected)+'\n'+repr(result.data))


# ========== post mutation tests ==========

POST_MUTATION = '''
  mutation PostMutation($url: String!, $description: String!) {
    post(url: $url, description: $description) {
      url
      description
      postedBy { name }
    }
  }
'''


class PostTests(TestCase):
    def setUp(self):
        self.user = create_test_user()
        self.pubsub = RecordingPubSub()
        self.schema = graphene.Schema(query=Query, mutation=Mutation)
        self.variables = {
            'url': 'http://example.com',
            'description': 'Description',
        }

    def test_post(self):
        """posting with a logged-in user creates exactly one link, and publishes one newLink"""
        context = GraphQLContext(user=self.user, pubsub=self.pubsub)
        result = self.schema.execute(POST_MUTATION, variable_values=self.variables,
                                     context_value=context)
        self.assertIsNone(result.errors, msg=format_graphql_errors(result.errors))
        expected = {
            'post': {
                'url': 'http://example.com',
                'description': 'Description',
                'postedBy': {'name': 'Test User'},
            }
        }
        self.assertEqual(result.data, expected, msg='\n'+repr(expected)+'\n'+repr(result.data))
        # check that the link was created properly
        self.assertEqual(LinkModel.objects.count(), 1)
        link = LinkModel.objects.get()
        self.assertEqual(link.url, 'http://example.com')
        self.assertEqual(link.description, 'Description')
        self.assertEqual(link.posted_by, self.user)
        self.assertEqual(self.pubsub.published, [(NEW_LINK, {'created_link': link.pk})])

    def test_post_unauthenticated(self):
        """post with no logged-in user fails, and neither creates nor publishes anything"""
        context = GraphQLContext(pubsub=self.pubsub)
        result = self.schema.execute(POST_MUTATION, variable_values=self.variables,
                                     context_value=context)
        self.assertIsNotNone(result.errors, msg='post should have failed: no user logged-in')
        self.assertIn('Unauthenticated!', repr(result.errors))
        expected = {'post': None}
        self.assertEqual(result.data, expected, msg='\n'+repr(expected)+'\n'+repr(result.data))
        self.assertEqual(LinkModel.objects.count(), 0)
        self.assertEqual(self.pubsub.published, [])


# ========== vote mutation tests ==========

VOTE_MUTATION = '''
  mutation VoteMutation($linkId: ID!) {
    vote(linkId: $linkId) {
      link {
        url
        votes { user { name } }
      }
      user { name }
    }
  }
'''


class VoteTests(TestCase):
    def setUp(self):
        create_feed_test_data()
        self.link = LinkModel.objects.latest('created_at')
        self.user = create_test_user()
        self.pubsub = RecordingPubSub()
        self.schema = graphene.Schema(query=Query, mutation=Mutation)

    def vote(self, link_id, user=None):
        context = GraphQLContext(user=user, pubsub=self.pubsub)
        return self.schema.execute(VOTE_MUTATION, variable_values={'linkId': link_id},
                                   context_value=context)

    def test_vote(self):
        """normal vote creation, and that duplicate votes are not allowed"""
        result = self.vote(str(self.link.pk), self.user)
        self.assertIsNone(result.errors, msg=format_graphql_errors(result.errors))
        expected = {
            'vote': {
                'link': {
                    'url': 'http://b.com',
                    'votes': [{'user': {'name': 'Test User'}}],
                },
                'user': {'name': 'Test User'},
            }
        }
        self.assertEqual(result.data, expected, msg='\n'+repr(expected)+'\n'+repr(result.data))
        vote = VoteModel.objects.get()
        self.assertEqual(self.pubsub.published, [(NEW_VOTE, {'created_vote': vote.pk})])
        # verify that a second vote can't be created
        result = self.vote(str(self.link.pk), self.user)
        self.assertIsNotNone(result.errors,
                             msg='vote should have failed: duplicate votes not allowed')
        self.assertIn('Already voted for link: {}'.format(self.link.pk), repr(result.errors))
        expected = {'vote': None}
        self.assertEqual(result.data, expected, msg='\n'+repr(expected)+'\n'+repr(result.data))
        self.assertEqual(VoteModel.objects.count(), 1)
        self.assertEqual(len(self.pubsub.published), 1)

    def test_vote_two_users(self):
        """different users may vote for the same link"""
        user2 = create_test_user(name='Another User', password='zyz987', email='ano@user.com')
        for user in (self.user, user2):
            result = self.vote(str(self.link.pk), user)
            self.assertIsNone(result.errors, msg=format_graphql_errors(result.errors))
        self.assertEqual(self.link.votes.count(), 2)

    def test_vote_unauthenticated(self):
        result = self.vote(str(self.link.pk))
        self.assertIsNotNone(result.errors, msg='vote should have failed: no user logged-in')
        self.assertIn('Unauthenticated!', repr(result.errors))
        self.assertEqual(result.data, {'vote': None})
        self.assertEqual(VoteModel.objects.count(), 0)
        self.assertEqual(self.pubsub.published, [])

    def test_vote_bad_link(self):
        """a link id with no link behind it fails"""
        last_link_pk = LinkModel.objects.order_by('id').last().pk
        result = self.vote(str(last_link_pk + 1), self.user)
        self.assertIsNotNone(result.errors, msg='vote should have failed: invalid linkId')
        self.assertIn('Requested link not found!', repr(result.errors))
        self.assertEqual(result.data, {'vote': None})

    def test_vote_malformed_link_id(self):
        result = self.vote('not-a-number', self.user)
        self.assertIsNotNone(result.errors, msg='vote should have failed: malformed linkId')
        self.assertIn('Requested link not found!', repr(result.errors))
        self.assertEqual(VoteModel.objects.count(), 0)

    def test_vote_link_id_out_of_range(self):
        """ids no primary key can hold fail like any other missing link"""
        for link_id in (str(2 ** 64), '-1', '0'):
            result = self.vote(link_id, self.user)
            self.assertIsNotNone(result.errors, msg='vote should have failed: ' + link_id)
            self.assertIn('Requested link not found!', repr(result.errors))
            self.assertEqual(result.data, {'vote': None})
        self.assertEqual(VoteModel.objects.count(), 0)


# ========== subscription tests ==========

class SubscriptionTests(TestCase):
    def setUp(self):
        self.user = create_test_user()
        self.context = GraphQLContext(user=self.user, pubsub=RecordingPubSub())

    async def next_event(self, stream):
        return await asyncio.wait_for(stream.__anext__(), timeout=5)

    async def test_new_link(self):
        """a post made after subscribing to newLink is delivered to the subscriber"""
        stream = await subscribe(
            schema,
            'subscription { newLink { url description postedBy { name } } }',
            context_value=self.context,
        )
        self.assertNotIsInstance(stream, ExecutionResult)
        try:
            result = await sync_to_async(schema.execute)(
                POST_MUTATION,
                variable_values={'url': 'http://example.com', 'description': 'Description'},
                context_value=self.context,
            )
            self.assertIsNone(result.errors, msg=format_graphql_errors(result.errors))
            event = await self.next_event(stream)
        finally:
            await stream.aclose()
        self.assertIsNone(event.errors, msg=format_graphql_errors(event.errors))
        expected = {
            'newLink': {
                'url': 'http://example.com',
                'description': 'Description',
                'postedBy': {'name': 'Test User'},
            }
        }
        self.assertEqual(event.data, expected, msg='\n'+repr(expected)+'\n'+repr(event.data))

    async def test_new_vote(self):
        """a vote made after subscribing to newVote is delivered to the subscriber"""
        link = await sync_to_async(LinkModel.objects.create)(description='Test', url='http://a.com')
        stream = await subscribe(
            schema,
            'subscription { newVote { link { url } user { name } } }',
            context_value=self.context,
        )
        self.assertNotIsInstance(stream, ExecutionResult)
        try:
            result = await sync_to_async(schema.execute)(
                VOTE_MUTATION,
                variable_values={'linkId': str(link.pk)},
                context_value=self.context,
            )
            self.assertIsNone(result.errors, msg=format_graphql_errors(result.errors))
            event = await self.next_event(stream)
        finally:
            await stream.aclose()
        self.assertIsNone(event.errors, msg=format_graphql_errors(event.errors))
        expected = {
            'newVote': {
                'link': {'url': 'http://a.com'},
                'user': {'name': 'Test User'},
            }
        }
        self.assertEqual(event.data, expected, msg='\n'+repr(expected)+'\n'+repr(event.data))

    async def test_new_vote_nested_selection(self):
        """relations of a newVote payload resolve at any depth"""
        link = await sync_to_async(LinkModel.objects.create)(
            description='Test', url='http://a.com', posted_by=self.user)
        stream = await subscribe(
            schema,
            'subscription { newVote {'
            '  link { votes { user { name } } }'
            '  user { links { url } }'
            '} }',
            context_value=self.context,
        )
        try:
            result = await sync_to_async(schema.execute)(
                VOTE_MUTATION,
                variable_values={'linkId': str(link.pk)},
                context_value=self.context,
            )
            self.assertIsNone(result.errors, msg=format_graphql_errors(result.errors))
            event = await self.next_event(stream)
        finally:
            await stream.aclose()
        self.assertIsNone(event.errors, msg=format_graphql_errors(event.errors))
        expected = {
            'newVote': {
                'link': {'votes': [{'user': {'name': 'Test User'}}]},
                'user': {'links': [{'url': 'http://a.com'}]},
            }
        }
        self.assertEqual(event.data, expected, msg='\n'+repr(expected)+'\n'+repr(event.data))

    async def test_new_link_nested_selection(self):
        """relations of a newLink payload resolve at any depth"""
        earlier = await sync_to_async(LinkModel.objects.create)(
            description='Earlier', url='http://a.com', posted_by=self.user)
        await sync_to_async(VoteModel.objects.create)(link=earlier, user=self.user)
        stream = await subscribe(
            schema,
            'subscription { newLink { postedBy { links { url votes { user { name } } } } } }',
            context_value=self.context,
        )
        try:
            result = await sync_to_async(schema.execute)(
                POST_MUTATION,
                variable_values={'url': 'http://example.com', 'description': 'Description'},
                context_value=self.context,
            )
            self.assertIsNone(result.errors, msg=format_graphql_errors(result.errors))
            event = await self.next_event(stream)
        finally:
            await stream.aclose()
        self.assertIsNone(event.errors, msg=format_graphql_errors(event.errors))
        expected = {
            'newLink': {
                'postedBy': {
                    'links': [
                        {'url': 'http://a.com', 'votes': [{'user': {'name': 'Test User'}}]},
                        {'url': 'http://example.com', 'votes': []},
                    ]
                }
            }
        }
        self.assertEqual(event.data, expected, msg='\n'+repr(expected)+'\n'+repr(event.data))

    async def test_subscription_closed(self):
        """closing a subscription leaves the topic's group"""
        layer = self.context.pubsub.layer
        stream = await subscribe(schema, 'subscription { newLink { url } }',
                                 context_value=self.context)
        self.assertEqual(len(layer.groups.get(NEW_LINK, {})), 1)
        await stream.aclose()
        self.assertEqual(len(layer.groups.get(NEW_LINK, {})), 0)
