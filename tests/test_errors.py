from __future__ import annotations

import pytest

from gated_counter.errors import CounterError, Forbidden, InvalidIdentity, Overflow, Unauthorized, Underflow


@pytest.mark.parametrize(
    "cls,code,status",
    [
        (Unauthorized, "unauthorized", 401),
        (Forbidden, "forbidden", 403),
        (Underflow, "underflow", 409),
        (Overflow, "overflow", 409),
        (InvalidIdentity, "invalid_identity", 400),
    ],
)
def test_error_codes(cls, code, status):
    err = cls()
    assert isinstance(err, CounterError)
    assert err.code == code
    assert err.status_code == status
    assert str(err) == err.message


def test_underflow_message():
    assert Underflow().message == "Counter is zero"


def test_to_dict_and_problem():
    err = Forbidden(context={"caller": "0x01"})
    assert err.to_dict() == {
        "code": "forbidden",
        "message": "Caller is not an operator",
        "context": {"caller": "0x01"},
    }
    prob = err.to_problem()
    assert prob["status"] == 403
    assert prob["title"] == "Forbidden"
    assert prob["type"].endswith("#forbidden")
    assert prob["context"] == {"caller": "0x01"}


def test_context_defaults_to_empty():
    err = Unauthorized()
    assert err.context == {}
    assert "context" not in err.to_problem()
