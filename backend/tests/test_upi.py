from elibrary.upi import build_upi_pay_uri, format_amount


def test_format_amount():
    assert format_amount(20) == "20.00"
    assert format_amount("7.5") == "7.50"
    assert format_amount(0) == "0.00"


def test_uri_parameter_order_and_encoding():
    uri = build_upi_pay_uri(
        payee_vpa="library@upi",
        payee_name="E Library",
        amount=12,
        transaction_note="Print job abc",
        transaction_ref="pay-1",
    )
    assert uri == "upi://pay?pa=library%40upi&pn=E+Library&am=12.00&cu=INR&tn=Print+job+abc&tr=pay-1"


def test_custom_currency():
    uri = build_upi_pay_uri(
        payee_vpa="x@y",
        payee_name="X",
        amount=1,
        transaction_note="n",
        transaction_ref="r",
        currency="USD",
    )
    assert "&cu=USD&" in uri
