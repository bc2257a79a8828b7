from django.db import models


class LinkModel(models.Model):
    description = models.TextField(null=True, blank=True)
    url = models.URLField()
    created_at = models.DateTimeField(auto_now_add=True)
    posted_by = models.ForeignKey('users.UserModel', null=True, on_delete=models.SET_NULL,
                                  related_name='links')

    class Meta:
        ordering = ('id',)


class VoteModel(models.Model):
    # The unique constraint backs up the check in the vote mutation, which is query-then-insert
    # and so can race.
    user = models.ForeignKey('users.UserModel', on_delete=models.CASCADE, related_name='votes')
    link = models.ForeignKey('links.LinkModel', on_delete=models.CASCADE, related_name='votes')

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=('link', 'user'), name='unique_vote_per_link_and_user'),
        ]
