# bloodnet/apps.py
from django.apps import AppConfig


class BloodNetConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "bloodnet"
    verbose_name = "Blood request matching"
