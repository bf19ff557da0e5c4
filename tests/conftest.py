from __future__ import annotations

import sys

import pytest

from verify.oracle import OracleConfig

UNIT_SPEC = """\
require "rails_helper"

RSpec.describe User, type: :model do
  let(:user) { create(:user, first_name: "John") }

  it "has a first name" do
    expect(user.first_name).to eq("John")
  end
end
"""


def python_oracle(script: str, *, timeout_seconds: float = 60.0) -> OracleConfig:
    """Oracle running ``script`` with the candidate path as ``sys.argv[1]``."""
    return OracleConfig(
        command=(sys.executable, "-c", script),
        timeout_seconds=timeout_seconds,
    )


@pytest.fixture
def make_oracle():
    return python_oracle


@pytest.fixture
def unit_spec() -> str:
    return UNIT_SPEC


@pytest.fixture
def passing_oracle() -> OracleConfig:
    return python_oracle("import sys; sys.exit(0)")


@pytest.fixture
def failing_oracle() -> OracleConfig:
    return python_oracle("import sys; print('1 example, 1 failure'); sys.exit(1)")


@pytest.fixture
def missing_oracle(tmp_path) -> OracleConfig:
    return OracleConfig(command=(str(tmp_path / "no-such-oracle"), "{file}"))
