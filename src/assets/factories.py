"""Factory Boy factories for AULAS test data generation."""

from decimal import Decimal

import factory
from factory.django import DjangoModelFactory


class SchoolFactory(DjangoModelFactory):
    class Meta:
        model = "assets.School"

    name = factory.Sequence(lambda n: f"School {n}")
    address = factory.Faker("address")


class UserFactory(DjangoModelFactory):
    """Active teacher by default; pass ``role``/``school`` to vary it."""

    class Meta:
        model = "accounts.CustomUser"
        skip_postgeneration_save = True

    username = factory.Sequence(lambda n: f"user{n}")
    email = factory.LazyAttribute(lambda o: f"{o.username}@example.com")
    full_name = factory.Faker("name")
    status = "active"
    role = "teacher"
    school = factory.SubFactory(SchoolFactory)

    @factory.post_generation
    def password(self, create, extracted, **kwargs):
        pwd = extracted or "testpass123!"
        self.set_password(pwd)
        if create:
            self.save(update_fields=["password"])


class ClassroomFactory(DjangoModelFactory):
    class Meta:
        model = "assets.Classroom"

    school = factory.SubFactory(SchoolFactory)
    name = factory.Sequence(lambda n: f"Aula {n}")
    code = factory.Sequence(lambda n: f"A-{n:03d}")
    capacity = 30


class AssetCategoryFactory(DjangoModelFactory):
    class Meta:
        model = "assets.AssetCategory"

    name = factory.Sequence(lambda n: f"Category {n}")
    description = factory.Faker("sentence")


class AssetTemplateFactory(DjangoModelFactory):
    class Meta:
        model = "assets.AssetTemplate"

    category = factory.SubFactory(AssetCategoryFactory)
    name = factory.Sequence(lambda n: f"Projector {n}")
    manufacturer = "Epson"
    model_number = factory.Sequence(lambda n: f"X{n}")


class AssetFactory(DjangoModelFactory):
    class Meta:
        model = "assets.Asset"

    template = factory.SubFactory(AssetTemplateFactory)
    classroom = factory.SubFactory(ClassroomFactory)
    serial_number = factory.Sequence(lambda n: f"SN-{n:05d}")
    value_estimate = Decimal("100.00")
    status = "available"


class AssetIncidentFactory(DjangoModelFactory):
    class Meta:
        model = "assets.AssetIncident"

    asset = factory.SubFactory(AssetFactory)
    description = factory.Faker("sentence")
    status = "open"


class InvitationFactory(DjangoModelFactory):
    class Meta:
        model = "accounts.Invitation"

    email = factory.Sequence(lambda n: f"invitee{n}@example.com")
    role = "teacher"
    school = factory.SubFactory(SchoolFactory)
