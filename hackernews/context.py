# hackernews-graphql -- hackernews/context.py
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

from django.conf import settings

from hackernews.pubsub import pubsub as default_pubsub
from users.auth import get_user_from_auth_token


class GraphQLContext(object):
    """What every resolver sees as info.context.

    db is the database alias resolvers query against, pubsub the newLink/newVote registry, and
    user the authenticated UserModel (or None).
    """

    def __init__(self, request=None, user=None, pubsub=None, db=None):
        self.request = request
        self.user = user
        self.pubsub = pubsub or default_pubsub
        self.db = db or settings.GRAPHQL_DATABASE

    def verify_auth(self):
        if self.user is None:
            raise Exception('Unauthenticated!')


def build_context(request, pubsub=None):
    """Authenticate `request` and return its GraphQLContext.

    Raises users.auth.AuthenticationError for a bearer token that does not verify.
    """
    db = settings.GRAPHQL_DATABASE
    user = get_user_from_auth_token(request, using=db)
    return GraphQLContext(request=request, user=user, pubsub=pubsub, db=db)
