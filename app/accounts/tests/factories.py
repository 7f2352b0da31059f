"""
Factory Boy factories for account models.

Usage:
    from accounts.tests.factories import UserFactory, MentorFactory

    mentee = UserFactory()
    mentor = MentorFactory(first_name="Grace")
    admin = AdminFactory()
"""

import factory

from accounts.models import User, UserRole


class UserFactory(factory.django.DjangoModelFactory):
    """
    Factory for User. Defaults to an active MENTEE.

    Examples:
        user = UserFactory()
        inactive = UserFactory(is_active=False)
    """

    class Meta:
        model = User
        skip_postgeneration_save = True

    email = factory.Sequence(lambda n: f"user{n}@example.com")
    first_name = factory.Faker("first_name")
    last_name = factory.Faker("last_name")
    role = UserRole.MENTEE
    is_active = True
    is_staff = False

    @classmethod
    def _create(cls, model_class, *args, **kwargs):
        """Create through UserManager.create_user() so the password is hashed."""
        password = kwargs.pop("password", "TestPass123!")
        return model_class.objects.create_user(
            email=kwargs.pop("email"), password=password, **kwargs
        )


class MentorFactory(UserFactory):
    role = UserRole.MENTOR


class AdminFactory(UserFactory):
    role = UserRole.ADMIN
