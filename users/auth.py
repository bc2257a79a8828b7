# hackernews-graphql -- users/auth.py
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
from datetime import datetime, timedelta, timezone

import bcrypt
import jwt
from django.conf import settings

from users.models import UserModel


logger = logging.getLogger(__name__)


class AuthenticationError(Exception):
    """A bearer token was supplied, but could not be verified."""


# ========== passwords ==========

def hash_password(password):
    hashed = bcrypt.hashpw(password.encode('utf-8'),
                           bcrypt.gensalt(rounds=settings.PASSWORD_HASH_ROUNDS))
    return hashed.decode('utf-8')


def check_password(password, password_hash):
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # stored value is not a bcrypt hash
        return False


# ========== tokens ==========

def create_token(user):
    """Return a signed bearer token identifying `user`."""
    payload = {'userId': user.pk}
    if settings.API_TOKEN_TTL:
        payload['exp'] = datetime.now(timezone.utc) + timedelta(seconds=settings.API_TOKEN_TTL)
    return jwt.encode(payload, settings.API_SECRET, algorithm=settings.API_TOKEN_ALGORITHM)


def decode_token(token):
    """Verify `token` against the shared secret and return the user id it carries."""
    try:
        payload = jwt.decode(token, settings.API_SECRET,
                             algorithms=[settings.API_TOKEN_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise AuthenticationError('Token has expired')
    except jwt.InvalidTokenError:
        raise AuthenticationError('Invalid token')
    user_id = payload.get('userId')
    if not isinstance(user_id, int) or isinstance(user_id, bool):
        raise AuthenticationError('Invalid token')
    return user_id


def get_user_from_auth_token(request, using='default'):
    """Return the user named by the request's 'Authorization: Bearer <token>' header.

    No header, or some other authorization scheme, gives None, as does a valid token for a user
    that no longer exists. A bearer header whose token is missing or fails verification raises
    AuthenticationError.
    """
    parts = request.META.get('HTTP_AUTHORIZATION', '').split()
    if not parts or parts[0].lower() != 'bearer':
        return None
    if len(parts) != 2:
        logger.info('rejected malformed bearer authorization header')
        raise AuthenticationError('Invalid token')
    try:
        user_id = decode_token(parts[1])
    except AuthenticationError as e:
        logger.info('rejected bearer token: %s', e)
        raise
    return UserModel.objects.using(using).filter(pk=user_id).first()
