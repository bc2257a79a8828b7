# hackernews-graphql -- users/tests.py
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

from datetime import datetime, timedelta, timezone

import jwt
from django.conf import settings
from django.test import TestCase, override_settings

import graphene

from hackernews.context import GraphQLContext
from hackernews.schema import Mutation, Query
from hackernews.utils import format_graphql_errors
from .auth import (AuthenticationError, check_password, create_token, decode_token,
                   get_user_from_auth_token, hash_password)
from .models import UserModel


# ========== utility functions ==========

def create_test_user(name=None, password=None, email=None):
    user = UserModel.objects.create(
        name=name or 'Test User',
        password=hash_password(password or 'abc123'),
        email=email or 'test@user.com'
    )
    return user


def auth_header(token):
    class Auth(object):
        META = {'HTTP_AUTHORIZATION': 'Bearer {}'.format(token)}
    return Auth


# ========== password hashing tests ==========

class PasswordTests(TestCase):
    def test_hash_is_not_plaintext(self):
        """stored passwords are bcrypt hashes, salted per call"""
        hashed = hash_password('abc123')
        self.assertNotEqual(hashed, 'abc123')
        self.assertTrue(hashed.startswith('$2'))
        self.assertNotEqual(hashed, hash_password('abc123'))

    def test_check_password(self):
        hashed = hash_password('abc123')
        self.assertTrue(check_password('abc123', hashed))
        self.assertFalse(check_password('abc124', hashed))

    def test_check_password_not_a_hash(self):
        """a stored value that isn't a bcrypt hash never matches"""
        self.assertFalse(check_password('abc123', 'abc123'))


# ========== token tests ==========

class TokenTests(TestCase):
    def test_token_round_trip(self):
        user = create_test_user()
        self.assertEqual(decode_token(create_token(user)), user.pk)

    def test_token_without_ttl_has_no_expiry(self):
        user = create_test_user()
        payload = jwt.decode(create_token(user), settings.API_SECRET, algorithms=['HS256'])
        self.assertEqual(payload, {'userId': user.pk})

    @override_settings(API_TOKEN_TTL=60)
    def test_token_with_ttl_expires(self):
        user = create_test_user()
        payload = jwt.decode(create_token(user), settings.API_SECRET, algorithms=['HS256'])
        self.assertIn('exp', payload)

    def test_token_expired(self):
        token = jwt.encode({'userId': 1, 'exp': datetime.now(timezone.utc) - timedelta(minutes=1)},
                           settings.API_SECRET, algorithm='HS256')
        with self.assertRaisesMessage(AuthenticationError, 'Token has expired'):
            decode_token(token)

    def test_token_wrong_secret(self):
        token = jwt.encode({'userId': 1}, 'not-the-secret', algorithm='HS256')
        with self.assertRaisesMessage(AuthenticationError, 'Invalid token'):
            decode_token(token)

    def test_token_garbage(self):
        with self.assertRaisesMessage(AuthenticationError, 'Invalid token'):
            decode_token('AbDbAbDbAbDbA')

    def test_token_user_id_not_an_integer(self):
        token = jwt.encode({'userId': 'one'}, settings.API_SECRET, algorithm='HS256')
        with self.assertRaisesMessage(AuthenticationError, 'Invalid token'):
            decode_token(token)


class GetUserTests(TestCase):
    def test_get_user_token_missing_or_other_scheme(self):
        """get_user_from_auth_token() with no or non-Bearer HTTP_AUTHORIZATION header should
        return None
        """
        create_test_user()
        class AuthEmpty(object):
            META = {}
        self.assertIsNone(get_user_from_auth_token(AuthEmpty))
        class AuthBasic(object):
            META = {'HTTP_AUTHORIZATION': 'Basic ArgleBargle'}
        self.assertIsNone(get_user_from_auth_token(AuthBasic))

    def test_get_user_token_valid(self):
        """get_user_from_auth_token() with valid HTTP_AUTHORIZATION header should return user"""
        user = create_test_user()
        self.assertEqual(get_user_from_auth_token(auth_header(create_token(user))), user)

    def test_get_user_token_wrong(self):
        """get_user_from_auth_token() with a Bearer header but invalid token should raise"""
        create_test_user()
        with self.assertRaises(AuthenticationError):
            get_user_from_auth_token(auth_header('AbDbAbDbAbDbA'))

    def test_get_user_token_missing_after_bearer(self):
        class AuthBare(object):
            META = {'HTTP_AUTHORIZATION': 'Bearer'}
        with self.assertRaisesMessage(AuthenticationError, 'Invalid token'):
            get_user_from_auth_token(AuthBare)

    def test_get_user_deleted(self):
        """a valid token for a user that no longer exists gives no user"""
        user = create_test_user()
        token = create_token(user)
        user.delete()
        self.assertIsNone(get_user_from_auth_token(auth_header(token)))


# ========== me query tests ==========

class MeTests(TestCase):
    def setUp(self):
        self.user = create_test_user()
        self.query = '''
          query MeQuery {
            me {
              name
              email
              links { url }
            }
          }
        '''
        self.schema = graphene.Schema(query=Query)

    def test_me(self):
        result = self.schema.execute(self.query, context_value=GraphQLContext(user=self.user))
        self.assertIsNone(result.errors, msg=format_graphql_errors(result.errors))
        expected = {
            'me': {
                'name': 'Test User',
                'email': 'test@user.com',
                'links': [],
            }
        }
        self.assertEqual(result.data, expected, msg='\n'+repr(expected)+'\n'+repr(result.data))

    def test_me_unauthenticated(self):
        result = self.schema.execute(self.query, context_value=GraphQLContext())
        self.assertIsNotNone(result.errors, msg='me should have failed: no user logged-in')
        self.assertIn('Unauthenticated!', repr(result.errors))
        expected = {'me': None}
        self.assertEqual(result.data, expected, msg='\n'+repr(expected)+'\n'+repr(result.data))

    def test_password_not_exposed(self):
        result = self.schema.execute('query { me { password } }',
                                     context_value=GraphQLContext(user=self.user))
        self.assertIsNotNone(result.errors, msg='User should have no password field')
        self.assertIn("Cannot query field 'password'", repr(result.errors))


# ========== signup mutation tests ==========

class SignupTests(TestCase):
    def setUp(self):
        self.query = '''
          mutation SignupMutation($email: String!, $password: String!, $name: String!) {
            signup(email: $email, password: $password, name: $name) {
              token
              user { name email }
            }
          }
        '''
        self.variables = {
            'name': 'Jim Kirk',
            'email': 'kirk@example.com',
            'password': 'abc123',
        }
        self.schema = graphene.Schema(query=Query, mutation=Mutation)

    def test_signup(self):
        """sucessfully sign up a user"""
        result = self.schema.execute(self.query, variable_values=self.variables,
                                     context_value=GraphQLContext())
        self.assertIsNone(result.errors, msg=format_graphql_errors(result.errors))
        expected = {
            'signup': {
                'token': 'REDACTED',
                'user': {
                    'name': 'Jim Kirk',
                    'email': 'kirk@example.com',
                }
            }
        }
        token = result.data['signup']['token']
        result.data['signup']['token'] = 'REDACTED'
        self.assertEqual(result.data, expected, msg='\n'+repr(expected)+'\n'+repr(result.data))
        # check that the user was created properly
        user = UserModel.objects.get(email='kirk@example.com')
        self.assertEqual(user.name, 'Jim Kirk')
        self.assertNotEqual(user.password, 'abc123')
        self.assertTrue(check_password('abc123', user.password))
        self.assertEqual(decode_token(token), user.pk)

    def test_signup_duplicate(self):
        """should not be able to sign up two users with the same email"""
        result = self.schema.execute(self.query, variable_values=self.variables,
                                     context_value=GraphQLContext())
        self.assertIsNone(result.errors, msg=format_graphql_errors(result.errors))
        # now try to create a second one -- email address stays the same
        self.variables['name'] = 'Just Spock to Humans'
        self.variables['password'] = '26327790.8685354193060378'
        result = self.schema.execute(self.query, variable_values=self.variables,
                                     context_value=GraphQLContext())
        self.assertIsNotNone(result.errors,
                             msg='Signing up with a duplicate email should have failed')
        self.assertIn('user with that email address already exists', repr(result.errors))
        expected = {'signup': None}
        self.assertEqual(result.data, expected, msg='\n'+repr(expected)+'\n'+repr(result.data))
        self.assertEqual(UserModel.objects.count(), 1)


# ========== login mutation tests ==========

class LoginTests(TestCase):
    def setUp(self):
        self.user = create_test_user()
        self.query = '''
          mutation LoginMutation($email: String!, $password: String!) {
            login(email: $email, password: $password) {
              token
              user { name }
            }
          }
        '''
        self.schema = graphene.Schema(query=Query, mutation=Mutation)

    def test_login(self):
        """normal user log-in"""
        variables = {'email': self.user.email, 'password': 'abc123'}
        expected = {
            'login': {
                'token': 'REDACTED',
                'user': {
                    'name': self.user.name,
                }
            }
        }
        result = self.schema.execute(self.query, variable_values=variables,
                                     context_value=GraphQLContext())
        self.assertIsNone(result.errors, msg=format_graphql_errors(result.errors))
        try:
            token = result.data['login']['token']
            result.data['login']['token'] = 'REDACTED'
        except KeyError:
            raise Exception('malformed mutation result')
        self.assertEqual(decode_token(token), self.user.pk)
        self.assertEqual(result.data, expected, msg='\n'+repr(expected)+'\n'+repr(result.data))

    def test_login_user_not_found(self):
        """unsuccessful log-in: user not found"""
        variables = {
            'email': 'xxx' + self.user.email,  # unknown email address
            'password': 'irrelevant',
        }
        expected = {'login': None}
        result = self.schema.execute(self.query, variable_values=variables,
                                     context_value=GraphQLContext())
        self.assertIsNotNone(result.errors,
                             msg='Log-in of user with unknown email should have failed')
        self.assertIn('E-mail or password is incorrect', repr(result.errors))
        self.assertEqual(result.data, expected, msg='\n'+repr(expected)+'\n'+repr(result.data))

    def test_login_bad_password(self):
        """unsuccessful log-in: incorrect password"""
        variables = {
            'email': self.user.email,
            'password': 'xxxabc123',  # incorrect password
        }
        expected = {'login': None}
        result = self.schema.execute(self.query, variable_values=variables,
                                     context_value=GraphQLContext())
        self.assertIsNotNone(result.errors,
                             msg='Log-in of user with incorrect password should have failed')
        self.assertIn('E-mail or password is incorrect', repr(result.errors))
        self.assertEqual(result.data, expected, msg='\n'+repr(expected)+'\n'+repr(result.data))
