from django.apps import AppConfig


class EcoRouteConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "eco_route"
    verbose_name = "Eco-Route trip planner"
