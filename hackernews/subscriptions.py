# hackernews-graphql -- hackernews/subscriptions.py
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

from asgiref.sync import sync_to_async
from graphql import ExecutionResult, GraphQLError, execute, parse, validate
from graphql.execution import create_source_event_stream


# A subscription resolves in two halves: the subscribe_* resolver produces the source stream of
# events inside the event loop, and then each event is executed against the selection set. That
# second half resolves model relations lazily through the ORM, so it runs in a worker thread.

class SubscriptionResults(object):
    """Async iterator of ExecutionResults, one per event of the source stream."""

    def __init__(self, source, execute_event):
        self.source = source
        self.execute_event = execute_event

    def __aiter__(self):
        return self

    async def __anext__(self):
        payload = await self.source.__anext__()
        return await self.execute_event(payload)

    async def aclose(self):
        await self.source.aclose()


async def subscribe(schema, query, variable_values=None, operation_name=None, context_value=None):
    """Start the subscription operation in `query` against the graphene `schema`.

    Returns an ExecutionResult carrying the errors when the query does not parse or validate, or
    when its subscribe resolver fails. Otherwise returns a SubscriptionResults.
    """
    graphql_schema = schema.graphql_schema
    try:
        document = parse(query)
    except GraphQLError as error:
        return ExecutionResult(data=None, errors=[error])
    errors = validate(graphql_schema, document)
    if errors:
        return ExecutionResult(data=None, errors=errors)

    source = await create_source_event_stream(
        graphql_schema,
        document,
        context_value=context_value,
        variable_values=variable_values,
        operation_name=operation_name,
    )
    if isinstance(source, ExecutionResult):
        return source

    def execute_event(payload):
        return execute(
            graphql_schema,
            document,
            root_value=payload,
            context_value=context_value,
            variable_values=variable_values,
            operation_name=operation_name,
        )

    return SubscriptionResults(source, sync_to_async(execute_event))
