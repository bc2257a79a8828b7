# hackernews-graphql -- hackernews/tests.py
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
import json
import time

from asgiref.sync import sync_to_async
from channels.layers import InMemoryChannelLayer, get_channel_layer
from django.conf import settings
from django.test import RequestFactory, TestCase, TransactionTestCase, override_settings

from hackernews.context import GraphQLContext, build_context
from hackernews.pubsub import NEW_LINK, NEW_VOTE, PubSub
from users.auth import AuthenticationError, create_token
from users.tests import create_test_user


# ========== context tests ==========

class ContextTests(TestCase):
    def setUp(self):
        self.factory = RequestFactory()

    def test_context_anonymous(self):
        context = build_context(self.factory.post('/graphql'))
        self.assertIsNone(context.user)
        self.assertEqual(context.db, 'default')
        self.assertIsInstance(context.pubsub, PubSub)
        with self.assertRaisesMessage(Exception, 'Unauthenticated!'):
            context.verify_auth()

    def test_context_authenticated(self):
        user = create_test_user()
        request = self.factory.post('/graphql',
                                    HTTP_AUTHORIZATION='Bearer {}'.format(create_token(user)))
        context = build_context(request)
        self.assertEqual(context.user, user)
        self.assertIs(context.request, request)
        context.verify_auth()  # does not raise

    def test_context_bad_token(self):
        request = self.factory.post('/graphql', HTTP_AUTHORIZATION='Bearer AbDbAbDbAbDbA')
        with self.assertRaisesMessage(AuthenticationError, 'Invalid token'):
            build_context(request)

    @override_settings(GRAPHQL_DATABASE='other')
    def test_context_database_alias(self):
        self.assertEqual(GraphQLContext().db, 'other')


# ========== pub/sub tests ==========

class PubSubTests(TestCase):
    def setUp(self):
        self.pubsub = PubSub(layer=InMemoryChannelLayer())

    def test_unknown_topic(self):
        with self.assertRaises(ValueError):
            self.pubsub.publish('newComment', created_comment=1)

    def test_wrong_payload(self):
        with self.assertRaises(ValueError):
            self.pubsub.publish(NEW_LINK, created_vote=1)

    def test_publish_without_subscribers(self):
        self.pubsub.publish(NEW_LINK, created_link=1)

    async def test_publish_subscribe(self):
        links = await self.pubsub.subscribe(NEW_LINK)
        votes = await self.pubsub.subscribe(NEW_VOTE)
        try:
            await sync_to_async(self.pubsub.publish)(NEW_LINK, created_link=1)
            await sync_to_async(self.pubsub.publish)(NEW_VOTE, created_vote=2)
            link_payload = await asyncio.wait_for(links.__anext__(), timeout=5)
            vote_payload = await asyncio.wait_for(votes.__anext__(), timeout=5)
        finally:
            await links.aclose()
            await votes.aclose()
        self.assertEqual(link_payload, {'created_link': 1})
        self.assertEqual(vote_payload, {'created_vote': 2})

    async def test_fan_out(self):
        """every subscriber of a topic gets each payload"""
        first = await self.pubsub.subscribe(NEW_LINK)
        second = await self.pubsub.subscribe(NEW_LINK)
        try:
            await sync_to_async(self.pubsub.publish)(NEW_LINK, created_link=7)
            payloads = [await asyncio.wait_for(s.__anext__(), timeout=5) for s in (first, second)]
        finally:
            await first.aclose()
            await second.aclose()
        self.assertEqual(payloads, [{'created_link': 7}, {'created_link': 7}])

    async def test_transform(self):
        async def double(payload):
            return payload['created_link'] * 2
        doubled = await self.pubsub.subscribe(NEW_LINK, transform=double)
        keys = await self.pubsub.subscribe(NEW_LINK, transform=sorted)
        try:
            await sync_to_async(self.pubsub.publish)(NEW_LINK, created_link=21)
            self.assertEqual(await asyncio.wait_for(doubled.__anext__(), timeout=5), 42)
            self.assertEqual(await asyncio.wait_for(keys.__anext__(), timeout=5),
                             ['created_link'])
        finally:
            await doubled.aclose()
            await keys.aclose()

    async def test_closed_subscription(self):
        links = await self.pubsub.subscribe(NEW_LINK)
        await links.aclose()
        self.assertNotIn(NEW_LINK, self.pubsub.layer.groups)
        with self.assertRaises(StopAsyncIteration):
            await links.__anext__()

    async def test_default_layer_group_expiry(self):
        """subscribers on the configured layer stay in their group for well over a day"""
        pubsub = PubSub()
        self.assertEqual(pubsub.layer.group_expiry, settings.SUBSCRIPTION_GROUP_EXPIRY)
        links = await pubsub.subscribe(NEW_LINK)
        try:
            expires = pubsub.layer.groups[NEW_LINK][links.channel]
        finally:
            await links.aclose()
        self.assertGreater(expires, time.time() + 30 * 86400)


# ========== HTTP tests ==========

class IndexViewTests(TestCase):
    def test_index(self):
        response = self.client.get('/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {'active': True, 'message': 'Hackernews API'})


class GraphQLViewTests(TestCase):
    def post(self, query, variables=None, **headers):
        return self.client.post('/graphql',
                                json.dumps({'query': query, 'variables': variables}),
                                content_type='application/json', **headers)

    def test_query(self):
        response = self.post('query { info }')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(),
                         {'data': {'info': 'This is the API of a Hackernews Clone'}})

    def test_me_with_token(self):
        user = create_test_user()
        response = self.post('query { me { name } }',
                             HTTP_AUTHORIZATION='Bearer {}'.format(create_token(user)))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {'data': {'me': {'name': 'Test User'}}})

    def test_me_without_token(self):
        response = self.post('query { me { name } }')
        body = response.json()
        self.assertEqual(body['data'], {'me': None})
        self.assertEqual(body['errors'][0]['message'], 'Unauthenticated!')

    def test_bad_token(self):
        response = self.post('query { info }', HTTP_AUTHORIZATION='Bearer AbDbAbDbAbDbA')
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json(), {'errors': [{'message': 'Invalid token'}]})

    def test_signup_then_post(self):
        """the token from signup authorizes a post"""
        response = self.post(
            'mutation ($email: String!, $password: String!, $name: String!) {'
            '  signup(email: $email, password: $password, name: $name) { token }'
            '}',
            {'email': 'kirk@example.com', 'password': 'abc123', 'name': 'Jim Kirk'},
        )
        self.assertEqual(response.status_code, 200)
        token = response.json()['data']['signup']['token']
        response = self.post(
            'mutation { post(url: "http://example.com", description: "Example") {'
            '  postedBy { name }'
            '} }',
            HTTP_AUTHORIZATION='Bearer {}'.format(token),
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(),
                         {'data': {'post': {'postedBy': {'name': 'Jim Kirk'}}}})

    def test_graphiql(self):
        response = self.client.get('/graphql', HTTP_ACCEPT='text/html')
        self.assertEqual(response.status_code, 200)
        self.assertContains(response, 'graphiql')


class GraphQLStreamViewTests(TestCase):
    def post(self, body, **headers):
        return self.client.post('/graphql/stream', json.dumps(body),
                                content_type='application/json', **headers)

    def test_missing_query(self):
        response = self.post({})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {'errors': [{'message': 'Must provide query string.'}]})

    def test_invalid_body(self):
        response = self.client.post('/graphql/stream', '{not json',
                                    content_type='application/json')
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(),
                         {'errors': [{'message': 'POST body sent invalid JSON.'}]})

    def test_method_not_allowed(self):
        response = self.client.put('/graphql/stream')
        self.assertEqual(response.status_code, 405)

    def test_bad_token(self):
        response = self.post({'query': 'subscription { newLink { url } }'},
                             HTTP_AUTHORIZATION='Bearer AbDbAbDbAbDbA')
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json(), {'errors': [{'message': 'Invalid token'}]})

    def test_invalid_subscription(self):
        response = self.post({'query': 'subscription { newComment { text } }'})
        self.assertEqual(response.status_code, 400)
        self.assertIn("Cannot query field 'newComment'",
                      response.json()['errors'][0]['message'])


class GraphQLStreamTests(TransactionTestCase):
    """End to end over HTTP: the stream is opened first, then a post is made through /graphql."""

    async def test_new_link_stream(self):
        user = await sync_to_async(create_test_user)()
        authorization = 'Bearer {}'.format(create_token(user))
        response = await self.async_client.post(
            '/graphql/stream',
            json.dumps({'query': 'subscription { newLink { url postedBy { links { url } } } }'}),
            content_type='application/json',
            headers={'Authorization': authorization},
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response['Content-Type'], 'text/event-stream')
        content = response.streaming_content
        mutation = 'mutation { post(url: "http://example.com", description: "") { id } }'
        try:
            posted = await self.async_client.post(
                '/graphql',
                json.dumps({'query': mutation}),
                content_type='application/json',
                headers={'Authorization': authorization},
            )
            self.assertEqual(posted.status_code, 200)
            self.assertNotIn('errors', posted.json())
            chunk = await asyncio.wait_for(content.__anext__(), timeout=5)
        finally:
            await content.aclose()
            await get_channel_layer().flush()
        prefix, suffix = b'event: next\ndata: ', b'\n\n'
        self.assertTrue(chunk.startswith(prefix), msg=repr(chunk))
        self.assertTrue(chunk.endswith(suffix), msg=repr(chunk))
        expected = {
            'data': {
                'newLink': {
                    'url': 'http://example.com',
                    'postedBy': {'links': [{'url': 'http://example.com'}]},
                }
            }
        }
        data = json.loads(chunk[len(prefix):-len(suffix)])
        self.assertEqual(data, expected, msg='\n'+repr(expected)+'\n'+repr(data))
