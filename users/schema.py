# hackernews-graphql -- users/schema.py
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

import graphene
from graphene_django import DjangoObjectType

from users.auth import check_password, create_token, hash_password
from users.models import UserModel


logger = logging.getLogger(__name__)


class User(DjangoObjectType):
    class Meta:
        model = UserModel
        # never 'password'
        fields = ('id', 'name', 'email')

    # Link lives in links.schema, which imports this module, hence the import string.
    links = graphene.List(graphene.NonNull('links.schema.Link'), required=True)

    def resolve_links(self, info):
        return self.links.all()


class AuthPayload(graphene.ObjectType):
    token = graphene.String()
    user = graphene.Field(User)


class Query(object):
    me = graphene.Field(User)

    def resolve_me(self, info):
        info.context.verify_auth()
        return info.context.user


class Signup(graphene.Mutation):
    # mutation SignupMutation($email: String!, $password: String!, $name: String!) {
    #   signup(email: $email, password: $password, name: $name) {
    #     token
    #     user { id }
    #   }
    # }

    class Arguments:
        email = graphene.String(required=True)
        password = graphene.String(required=True)
        name = graphene.String(required=True)

    Output = AuthPayload

    def mutate(root, info, email, password, name):
        db = info.context.db
        if UserModel.objects.using(db).filter(email=email).exists():
            raise Exception('A user with that email address already exists!')
        user = UserModel(
            name=name,
            email=email,
            password=hash_password(password),
        )
        user.save(using=db)
        logger.info('signed up user %s', user.pk)
        return AuthPayload(token=create_token(user), user=user)


class Login(graphene.Mutation):
    # mutation LoginMutation($email: String!, $password: String!) {
    #   login(email: $email, password: $password) {
    #     token
    #   }
    # }

    class Arguments:
        email = graphene.String(required=True)
        password = graphene.String(required=True)

    Output = AuthPayload

    def mutate(root, info, email, password):
        # unknown address and wrong password get the same message
        user = UserModel.objects.using(info.context.db).filter(email=email).first()
        if user is None or not check_password(password, user.password):
            logger.info('failed login for %s', email)
            raise Exception('E-mail or password is incorrect')
        return AuthPayload(token=create_token(user), user=user)


class Mutation(object):
    signup = Signup.Field()
    login = Login.Field()
