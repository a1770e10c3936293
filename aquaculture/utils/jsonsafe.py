from decimal import Decimal
from datetime import date, datetime, time

from django.db.models import Model, QuerySet
from django.db.models.fields.files import FieldFile
from django.forms.models import model_to_dict


def json_safe(obj):
    if obj is None or isinstance(obj, (str, int, float, bool)):
        return obj
    if isinstance(obj, Decimal):
        return float(obj)
    if isinstance(obj, (datetime, date, time)):
        return obj.isoformat()
    if isinstance(obj, FieldFile):
        return obj.name or None
    if isinstance(obj, Model):
        return json_safe(obj.pk)
    if isinstance(obj, QuerySet):
        return [json_safe(x) for x in obj]
    if isinstance(obj, dict):
        return {str(k): json_safe(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple, set)):
        return [json_safe(v) for v in obj]
    return str(obj)


def snapshot(instance, fields=None):
    """JSON-ready dict of a model instance's concrete field values."""
    if instance is None:
        return None
    return json_safe(model_to_dict(instance, fields=fields))
