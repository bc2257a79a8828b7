# hackernews-graphql -- hackernews/management/commands/serve.py
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

import uvicorn
from django.conf import settings
from django.core.management.base import BaseCommand


logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Serve the API, subscriptions included, with uvicorn on API_HOST:API_PORT.'

    def add_arguments(self, parser):
        parser.add_argument('--host', help='bind address (default: API_HOST)')
        parser.add_argument('--port', type=int, help='port (default: API_PORT)')
        parser.add_argument('--reload', action='store_true', help='restart on code changes')

    def handle(self, *args, **options):
        host = options['host'] or settings.API_HOST
        port = options['port'] or settings.API_PORT
        logger.info('Server is running on http://%s:%s', host, port)
        # log_config=None leaves logging as settings.LOGGING configured it
        uvicorn.run('hackernews.asgi:application', host=host, port=port,
                    reload=options['reload'], log_config=None)
