"""
Checks applied to console payloads and uploads before anything is written.

The low-level checks return a ``(ok, message)`` pair; the record-level
``validate_*_data`` functions raise ValidationError naming the rejected
field, which the API turns into a 400 body.
"""
import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Tuple

from werkzeug.utils import secure_filename

logger = logging.getLogger(__name__)

Check = Tuple[bool, Optional[str]]
OK: Check = (True, None)

ALLOWED_IMAGE_EXTENSIONS = {'png', 'jpg', 'jpeg', 'gif', 'webp', 'bmp', 'heic'}
ALLOWED_DOCUMENT_EXTENSIONS = {'pdf', 'doc', 'docx', 'txt', 'odt'}
ALLOWED_DATA_EXTENSIONS = {'json', 'csv', 'xlsx', 'xls'}
ALLOWED_UPLOAD_EXTENSIONS = ALLOWED_IMAGE_EXTENSIONS | ALLOWED_DOCUMENT_EXTENSIONS | ALLOWED_DATA_EXTENSIONS

# Site photos vs. offers, contracts and data sheets
MAX_IMAGE_SIZE = 10 * 1024 * 1024
MAX_DOCUMENT_SIZE = 20 * 1024 * 1024

MAX_EMAIL_LENGTH = 254
MAX_URL_LENGTH = 2048

EMAIL_RE = re.compile(r'^[\w.%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$')
PHONE_RE = re.compile(r'^\+?\d{6,15}$')
PHONE_SEPARATORS_RE = re.compile(r'[\s\-().]')
URL_RE = re.compile(r'^https?://[A-Za-z0-9.-]+\.[A-Za-z]{2,}(?::\d+)?(?:[/?#].*)?$')

LEAD_PRIORITIES = {'hot', 'mid', 'low'}
PARTNER_TYPES = {'importatore', 'rivenditore', 'installatore'}
PRODUCTION_ORDER_TYPES = ('odp', 'odpel')
SERVICE_ORDER_TYPE = 'odl'


class ValidationError(Exception):
    """A payload was rejected; ``field`` names the offending key when known."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field


def _fail(message: str) -> Check:
    return False, message


def raise_if_invalid(result: Check, field: Optional[str] = None):
    """Raise ValidationError for a failed ``(ok, message)`` check."""
    ok, message = result
    if not ok:
        raise ValidationError(message, field)


def _is_blank(value: Any) -> bool:
    return value is None or value == ''


def validate_required_fields(data: Dict[str, Any], required_fields: List[str]) -> Check:
    """
    Every listed key must be present with a non-empty value.

    Args:
        data: Record payload
        required_fields: Keys that must be filled

    Returns:
        (ok, message) with the missing keys listed in the message
    """
    missing = [name for name in required_fields if _is_blank(data.get(name))]
    if missing:
        return _fail(f"Required: {', '.join(missing)}")
    return OK


def validate_email(email: str) -> Check:
    if not isinstance(email, str) or not email:
        return _fail("Email address is empty")
    if len(email) > MAX_EMAIL_LENGTH:
        return _fail(f"Email address longer than {MAX_EMAIL_LENGTH} characters")
    if not EMAIL_RE.match(email):
        return _fail(f"'{email}' is not an email address")
    return OK


def validate_phone(phone: str) -> Check:
    """Accepts 6 to 15 digits with an optional leading +; spaces, dashes, dots and brackets are ignored."""
    if not isinstance(phone, str) or not phone:
        return _fail("Phone number is empty")
    digits = PHONE_SEPARATORS_RE.sub('', phone)
    if not PHONE_RE.match(digits):
        return _fail(f"'{phone}' is not a phone number")
    return OK


def validate_url(url: str) -> Check:
    if not isinstance(url, str) or not url:
        return _fail("URL is empty")
    if len(url) > MAX_URL_LENGTH:
        return _fail(f"URL longer than {MAX_URL_LENGTH} characters")
    if not URL_RE.match(url):
        return _fail("URL must start with http:// or https:// and name a host")
    return OK


def validate_string_length(value: str, min_length: int = 0, max_length: int = 1000) -> Check:
    if not isinstance(value, str):
        return _fail("Expected text")
    if len(value) < min_length:
        return _fail(f"At least {min_length} characters required")
    if len(value) > max_length:
        return _fail(f"At most {max_length} characters allowed")
    return OK


def validate_number_range(value: float, min_value: Optional[float] = None,
                          max_value: Optional[float] = None) -> Check:
    """
    Numeric bounds check. Booleans are not numbers here.

    Args:
        value: Quantity, price or amount
        min_value: Inclusive lower bound, or None
        max_value: Inclusive upper bound, or None
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return _fail("Expected a number")
    if min_value is not None and value < min_value:
        return _fail(f"Must be at least {min_value}")
    if max_value is not None and value > max_value:
        return _fail(f"Must be at most {max_value}")
    return OK


def sanitize_string(value: str, max_length: int = 1000) -> str:
    """Strip NUL bytes and surrounding whitespace, then truncate."""
    if not isinstance(value, str):
        return str(value)
    return value.replace('\x00', '').strip()[:max_length]


def sanitize_filename(filename: str) -> str:
    """Storage-safe name for an uploaded file; 'file' when nothing survives."""
    return secure_filename(filename or '') or 'file'


def _extension(filename: str) -> Optional[str]:
    if not filename or '.' not in filename:
        return None
    return filename.rsplit('.', 1)[1].lower()


def validate_file_extension(filename: str, allowed_extensions: set) -> Check:
    extension = _extension(filename)
    if extension is None:
        return _fail("File name has no extension")
    if extension not in allowed_extensions:
        return _fail(f".{extension} files are not accepted (allowed: {', '.join(sorted(allowed_extensions))})")
    return OK


def is_image_file(filename: str) -> bool:
    return _extension(filename) in ALLOWED_IMAGE_EXTENSIONS


# =============================================================================
# RECORD PAYLOADS
# =============================================================================

CONTACT_CHECKS = (('email', validate_email), ('phone', validate_phone))


def _check_contacts(data: Dict[str, Any], checks: Iterable = CONTACT_CHECKS):
    """Validate the contact fields that are filled in; empty ones are skipped."""
    for field, check in checks:
        if data.get(field):
            raise_if_invalid(check(data[field]), field)


def validate_customer_data(data: Dict[str, Any]):
    """
    Customer payload: a name, plus well-formed email / phone when given.

    Raises:
        ValidationError: on the first rejected field
    """
    raise_if_invalid(validate_required_fields(data, ['name']), 'name')
    _check_contacts(data)


def validate_lead_data(data: Dict[str, Any]):
    """
    Lead payload. Either a company or a contact name identifies the lead;
    priority must be hot/mid/low and the estimated value non-negative.
    """
    if _is_blank(data.get('company_name')) and _is_blank(data.get('contact_name')):
        raise ValidationError("A lead needs a company name or a contact name", 'company_name')

    _check_contacts(data)

    priority = data.get('priority')
    if priority and priority not in LEAD_PRIORITIES:
        raise ValidationError(f"Unknown priority '{priority}'", 'priority')

    if not _is_blank(data.get('value')):
        try:
            value = float(data['value'])
        except (TypeError, ValueError):
            raise ValidationError("Estimated value must be a number", 'value')
        raise_if_invalid(validate_number_range(value, min_value=0), 'value')


def validate_order_data(data: Dict[str, Any], order_types) -> None:
    """
    Sales order payload, checked before any dependent order is created.

    Production orders (odp, odpel) need a bill of materials; service
    orders (odl) need the work description handed to the technicians.
    """
    if not data.get('customer_id'):
        raise ValidationError("Select a customer", 'customer_id')

    order_type = data.get('order_type')
    if not order_type:
        raise ValidationError("Select an order type", 'order_type')
    if order_type not in order_types:
        raise ValidationError(f"Unknown order type '{order_type}'", 'order_type')

    if order_type in PRODUCTION_ORDER_TYPES and not data.get('bom_id'):
        raise ValidationError("Production orders need a bill of materials", 'bom_id')
    if order_type == SERVICE_ORDER_TYPE and not data.get('work_description'):
        raise ValidationError("Service orders need a work description", 'work_description')


def validate_partner_data(data: Dict[str, Any]):
    for field in ('company_name', 'partner_type'):
        raise_if_invalid(validate_required_fields(data, [field]), field)
    if data['partner_type'] not in PARTNER_TYPES:
        raise ValidationError(f"Unknown partner type '{data['partner_type']}'", 'partner_type')
    _check_contacts(data)


def format_validation_error(field: str, message: str) -> Dict[str, Any]:
    """JSON body returned with a 400 for a rejected field."""
    return {'success': False, 'error': message, 'field': field}
