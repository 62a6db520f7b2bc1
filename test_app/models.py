"""
Models exercised by the test suite.
"""

from django.core.exceptions import ValidationError
from django.db import models

from recursive_update import BatchActionsMixin


class Organization(models.Model):
    name = models.CharField(max_length=100)

    class Meta:
        app_label = "test_app"


class Permission(models.Model):
    name = models.CharField(max_length=50, unique=True)

    class Meta:
        app_label = "test_app"
        ordering = ["id"]

    def __str__(self):
        return self.name


class Role(BatchActionsMixin, models.Model):
    name = models.CharField(max_length=100)
    organization = models.ForeignKey(
        Organization,
        on_delete=models.CASCADE,
        related_name="roles",
        null=True,
        blank=True,
    )
    permissions = models.ManyToManyField(Permission, blank=True)

    class Meta:
        app_label = "test_app"
        ordering = ["id"]

    @classmethod
    def update_mappings(cls):
        return {"roles": {"manies": {"permissions": {}}}}

    def __str__(self):
        return self.name


class Customer(models.Model):
    name = models.CharField(max_length=100)

    class Meta:
        app_label = "test_app"


class Invoice(BatchActionsMixin, models.Model):
    number = models.CharField(max_length=20)
    currency = models.CharField(max_length=3, default="EUR")
    customer = models.ForeignKey(
        Customer, on_delete=models.PROTECT, related_name="invoices"
    )

    class Meta:
        app_label = "test_app"

    @classmethod
    def create_mappings(cls):
        return {
            "invoices": {
                "ones": {"customer": {}},
                "manies": {"line_items": {"options": {"overrides": ["currency"]}}},
            }
        }


class LineItem(models.Model):
    invoice = models.ForeignKey(
        Invoice, on_delete=models.CASCADE, related_name="line_items"
    )
    description = models.CharField(max_length=100)
    quantity = models.PositiveIntegerField(default=1)
    currency = models.CharField(max_length=3)

    class Meta:
        app_label = "test_app"
        ordering = ["id"]


class Individual(models.Model):
    name = models.CharField(max_length=100)

    class Meta:
        app_label = "test_app"


class Address(models.Model):
    individual = models.ForeignKey(
        Individual, on_delete=models.CASCADE, related_name="addresses"
    )
    street = models.CharField(max_length=200)

    class Meta:
        app_label = "test_app"
        ordering = ["id"]


class Student(models.Model):
    """Addresses are reached through the wrapped individual."""

    code = models.CharField(max_length=20)
    individual = models.OneToOneField(
        Individual, on_delete=models.CASCADE, related_name="student"
    )

    class Meta:
        app_label = "test_app"

    @property
    def addresses(self):
        return self.individual.addresses


def build_permission(model, attributes, prefix):
    """Creator used by mappings: prefixes the submitted name."""
    return model(name=f"{prefix}{attributes.get('name', '')}")


def unique_descriptions(line_items):
    descriptions = [item.description for item in line_items]
    if len(descriptions) != len(set(descriptions)):
        raise ValidationError("Line item descriptions must be unique.")


def max_line_items(line_items, limit):
    if len(line_items) > limit:
        raise ValidationError(f"At most {limit} line items are allowed.")
