from storefront.utils.helpers import round2, to_decimal, format_money
from storefront.utils.decorators import auth_required, auth_optional, b2b_required

__all__ = ['round2', 'to_decimal', 'format_money', 'auth_required', 'auth_optional', 'b2b_required']
