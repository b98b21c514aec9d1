"""
HTML Templates Package
"""

from .pages import (
    render_login_page,
    render_home_page,
    render_buy_tokens_page,
    render_payment_success_page,
    render_valuations_page,
    render_valuation_detail_page,
)

__all__ = [
    'render_login_page',
    'render_home_page',
    'render_buy_tokens_page',
    'render_payment_success_page',
    'render_valuations_page',
    'render_valuation_detail_page',
]
