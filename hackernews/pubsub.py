# hackernews-graphql -- hackernews/pubsub.py
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

import inspect
import logging

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer


logger = logging.getLogger(__name__)


# ========== channels ==========

# Each topic is a group on the channel layer, and each subscriber gets its own channel in that
# group. Payloads carry primary keys rather than model instances, so that subscribers load the
# row themselves (see the subscriptions in links.schema).

NEW_LINK = 'newLink'
NEW_VOTE = 'newVote'

CHANNELS = {
    NEW_LINK: ('created_link', ),
    NEW_VOTE: ('created_vote', ),
}


class Subscription(object):
    """Async iterator over the payloads one subscriber receives on a topic."""

    def __init__(self, layer, topic, channel, transform=None):
        self.layer = layer
        self.topic = topic
        self.channel = channel
        self.transform = transform
        self.closed = False

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self.closed:
            raise StopAsyncIteration
        message = await self.layer.receive(self.channel)
        payload = {key: value for key, value in message.items() if key != 'type'}
        if self.transform is not None:
            payload = self.transform(payload)
            if inspect.isawaitable(payload):
                payload = await payload
        return payload

    async def aclose(self):
        if not self.closed:
            self.closed = True
            await self.layer.group_discard(self.topic, self.channel)
            logger.debug('unsubscribed %s from %s', self.channel, self.topic)


class PubSub(object):
    def __init__(self, layer=None):
        self._layer = layer

    @property
    def layer(self):
        # looked up lazily, so settings are only needed once something is published
        if self._layer is None:
            self._layer = get_channel_layer()
        return self._layer

    @staticmethod
    def check_topic(topic, payload=None):
        if topic not in CHANNELS:
            raise ValueError('Unknown topic: {}'.format(topic))
        if payload is not None and set(payload) != set(CHANNELS[topic]):
            raise ValueError('Payload for {} must have exactly the keys: {}'
                             .format(topic, ', '.join(CHANNELS[topic])))

    def publish(self, topic, **payload):
        """Send `payload` to every current subscriber of `topic`. Called from synchronous code."""
        self.check_topic(topic, payload)
        logger.debug('publishing %s %r', topic, payload)
        async_to_sync(self.layer.group_send)(topic, dict(payload, type=topic))

    async def subscribe(self, topic, transform=None):
        """Join `topic` and return a Subscription over its future payloads.

        The subscriber is registered before this returns, so nothing published afterwards is
        missed. `transform`, which may be a coroutine function, is applied to each payload.
        """
        self.check_topic(topic)
        channel = await self.layer.new_channel()
        await self.layer.group_add(topic, channel)
        logger.debug('subscribed %s to %s', channel, topic)
        return Subscription(self.layer, topic, channel, transform)


pubsub = PubSub()
