# accounts/management/commands/issue_token.py

# Import BaseCommand from django.core.management.base because custom management commands are based on it.
from django.core.management.base import BaseCommand
# Import issue_token from accounts.services because this command only wraps it.
from accounts.services import issue_token

"""
Author:
This class defines a custom command that can be run from the
server's command line (using 'python manage.py issue_token 42').
It prints a signed login token for a user id, which is handy for
opening a test WebSocket, e.g.
'/ws/conversations/12?token=<printed token>'.
"""
class Command(BaseCommand):
    help = 'Prints a signed login token for a user id.'

    def add_arguments(self, parser):
        parser.add_argument('user_id')
        parser.add_argument('--email', default=None)
        parser.add_argument('--manager-id', dest='manager_id', default=None)
        parser.add_argument('--expires-in', dest='expires_in', type=int, default=None,
                            help='Lifetime in seconds (defaults to JWT_EXPIRES_SECONDS).')

    def handle(self, *args, **options):
        # User ids are numbers in the REST API; keep them numeric in the token when they look like one
        user_id = options['user_id']
        if user_id.isdigit():
            user_id = int(user_id)

        token = issue_token(
            user_id,
            email=options['email'],
            manager_id=options['manager_id'],
            expires_in=options['expires_in'],
        )
        self.stdout.write(token)
