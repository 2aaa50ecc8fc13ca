from datetime import datetime

from propertyhub.services.email import build_login_code_email
from propertyhub.services.formatting import (
    NBSP,
    admin_formatted_price,
    format_date_es_long,
    format_date_hu,
    format_number_es,
    public_formatted_price,
    to_number,
)
from propertyhub.workers.tasks import send_login_code_email


def test_hungarian_prices_group_with_non_breaking_spaces():
    assert admin_formatted_price(250000, "EUR") == f"250{NBSP}000 EUR"
    assert admin_formatted_price("1500", None) == f"1{NBSP}500 EUR"
    assert admin_formatted_price(999, "GBP") == "999 GBP"


def test_spanish_numbers_group_from_five_digits():
    assert format_number_es(1500) == "1500"
    assert format_number_es(15000) == "15.000"
    assert format_number_es(1250000) == "1.250.000"


def test_public_price_on_request():
    assert public_formatted_price(0) == "Precio a consultar"
    assert public_formatted_price(None) == "Precio a consultar"
    assert public_formatted_price(320000, "EUR") == "320.000 EUR"


def test_dates():
    assert format_date_hu("2024-03-01") == "2024. 03. 01."
    assert format_date_hu(None) is None
    assert format_date_es_long(datetime(2023, 12, 24)) == "24 de diciembre de 2023"
    assert format_date_es_long("2024-07-05T10:00:00Z") == "5 de julio de 2024"


def test_to_number():
    assert to_number("120000") == 120000
    assert to_number("12.5") == 12.5
    assert to_number("n/a") == 0
    assert to_number(True) == 1


def test_login_code_email_carries_the_code():
    message = build_login_code_email("482913", 3, "PropertyHub", "help@example.com", year=2025)

    assert message["subject"] == "PropertyHub sign-in code"
    assert "482913" in message["text"]
    assert "3 minutes" in message["text"]
    assert "482913" in message["html"]
    assert "help@example.com" in message["html"]


def test_login_code_task_without_smtp():
    result = send_login_code_email.apply(args=("admin@example.com", "123456")).get()
    assert result == {"status": "smtp_not_configured", "email": "admin@example.com"}


def test_non_finite_prices_are_treated_as_missing():
    assert to_number(float("inf")) == 0
    assert to_number("NaN") == 0
    assert public_formatted_price(float("inf")) == "Precio a consultar"
    assert admin_formatted_price(float("nan"), "EUR") == "0 EUR"
