# hackernews-graphql -- hackernews/views.py
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

import json
import logging

from asgiref.sync import sync_to_async
from django.http import HttpResponse, HttpResponseNotAllowed, JsonResponse, StreamingHttpResponse
from graphene_django.views import GraphQLView, HttpError
from graphql import ExecutionResult

from hackernews.context import build_context
from hackernews.schema import schema
from hackernews.subscriptions import subscribe
from users.auth import AuthenticationError


logger = logging.getLogger(__name__)


def error_response(status, *messages):
    return JsonResponse({'errors': [{'message': message} for message in messages]}, status=status)


def index(request):
    return JsonResponse({'active': True, 'message': 'Hackernews API'})


# ========== queries and mutations ==========

class HackernewsGraphQLView(GraphQLView):
    """graphene-django's view (and GraphiQL), with our context in place of the bare request."""

    def get_context(self, request):
        try:
            return build_context(request)
        except AuthenticationError as e:
            # GraphQLView.dispatch() turns this into {"errors": [{"message": ...}]}
            raise HttpError(HttpResponse(status=401), str(e))


# ========== subscriptions ==========

# Subscriptions are served as Server-Sent Events: the request carries the same query, variables
# and operationName parameters as /graphql, and each result is sent as an 'event: next' whose
# data is the JSON result. Errors found before the stream starts get an ordinary JSON response.

def parse_body(request):
    if request.method != 'POST' or not request.body:
        return {}
    try:
        data = json.loads(request.body)
    except ValueError:
        raise HttpError(HttpResponse(status=400), 'POST body sent invalid JSON.')
    if not isinstance(data, dict):
        raise HttpError(HttpResponse(status=400), 'POST body must be a JSON object.')
    return data


def sse_event(event, data):
    return 'event: {}\ndata: {}\n\n'.format(event, data)


async def event_stream(results):
    try:
        async for result in results:
            yield sse_event('next', json.dumps(result.formatted))
        yield sse_event('complete', '')
    finally:
        await results.aclose()
        logger.debug('subscription stream closed')


async def graphql_stream(request):
    if request.method not in ('GET', 'POST'):
        return HttpResponseNotAllowed(['GET', 'POST'])
    try:
        data = parse_body(request)
        query, variables, operation_name, _ = GraphQLView.get_graphql_params(request, data)
    except HttpError as e:
        return error_response(e.response.status_code, e.message)
    if not query:
        return error_response(400, 'Must provide query string.')

    try:
        context = await sync_to_async(build_context)(request)
    except AuthenticationError as e:
        return error_response(401, str(e))

    results = await subscribe(
        schema,
        query,
        variable_values=variables,
        operation_name=operation_name,
        context_value=context,
    )
    if isinstance(results, ExecutionResult):
        return JsonResponse({'errors': [error.formatted for error in results.errors]}, status=400)

    logger.debug('subscription stream opened (user %s)', context.user and context.user.pk)
    response = StreamingHttpResponse(event_stream(results), content_type='text/event-stream')
    response['Cache-Control'] = 'no-cache'
    return response
