from django.db import models


# Django's own user and authentication system would saddle us with a 'username' field, while
# the front end wants 'name' and logs in by email. So here is a simple User model, just capable
# enough for the API. The password is stored as a bcrypt hash (see users.auth); the bearer
# tokens are stateless JWTs, so nothing about them lives in the database.

class UserModel(models.Model):
    name = models.CharField(max_length=150)
    email = models.EmailField(unique=True)
    password = models.CharField(max_length=128)

    def __str__(self):
        return '{} <{}>'.format(self.name, self.email)
