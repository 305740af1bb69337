from django.apps import AppConfig


class ApiConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'payledger.backend.api'
    label = 'api'
    verbose_name = 'PayLedger'

    def ready(self):
        from .chart_of_accounts import validate_category_map
        validate_category_map()
