# FILE: tests/conftest.py

import pytest
import sys
import os
import logging
from typing import List

# Add src directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

# ==============================================================================
# PYTEST CONFIGURATION & HOOKS
# ==============================================================================

def pytest_configure(config):
    """Configure pytest settings and markers."""
    config.addinivalue_line("markers", "unit: Pure unit tests with no external dependencies.")
    config.addinivalue_line("markers", "format: Tests for byte-exact output format.")

@pytest.fixture(scope="session", autouse=True)
def setup_test_environment(pytestconfig):
    """Set up test environment with logging configuration."""
    log_level = pytestconfig.getoption("log_cli_level") or "INFO"
    logging.basicConfig(
        level=log_level.upper(),
        format="[%(asctime)s] [%(levelname)s] [%(name)s:%(lineno)d] - %(message)s",
        stream=sys.stdout,
        force=True,
    )
    logging.info(f"Test logging configured with level: {log_level.upper()}")
    yield

# ==============================================================================
# TEST DATA
# ==============================================================================

# ISA is exactly 106 characters: '*' at offset 3, ':' at 104 and '~' at 105.
ISA_4010 = "ISA*00*          *00*          *ZZ*SENDERID       *ZZ*RECEIVERID     *240715*1200*U*00401*000000001*0*P*:~"
ISA_5010 = "ISA*00*          *00*          *ZZ*SENDERID       *ZZ*RECEIVERID     *240718*0930*^*00501*000000002*0*T*>~"

PURCHASE_ORDER_SEGMENTS = [
    ISA_4010,
    "GS*PO*SENDERID*RECEIVERID*20240715*1200*1*X*004010~",
    "ST*850*0001~",
    "BEG*00*SA*PO12345**20240715~",
    "REF*DP*038~",
    "N1*ST*ACME WAREHOUSE*92*0001~",
    "PO1*1*10*EA*9.99**BP*ITEM-1*VP*SKU:RED:L~",
    "CTT*1~",
    "SE*7*0001~",
    "GE*1*1~",
    "IEA*1*000000001~",
]

TWO_GROUP_SEGMENTS = [
    ISA_5010,
    "GS*PO*SENDERID*RECEIVERID*20240718*0930*10*X*005010~",
    "ST*850*1001~",
    "BEG*00*SA*PO-1**20240718~",
    "SE*3*1001~",
    "ST*850*1002~",
    "BEG*00*SA*PO-2**20240718~",
    "PO1*1*5*CS*12.50**UP*012345678905~",
    "SE*4*1002~",
    "GE*2*10~",
    "GS*IN*SENDERID*RECEIVERID*20240718*0930*11*X*005010~",
    "ST*810*2001~",
    "BIG*20240718*INV-1~",
    "SE*3*2001~",
    "GE*1*11~",
    "IEA*2*000000002~",
]


def build_edi(segments: List[str], end_of_line: str = "") -> str:
    """Joins terminated segments, optionally one per line."""
    return end_of_line.join(segments)


@pytest.fixture(scope="session")
def purchase_order_edi() -> str:
    """A compact 4010 purchase order with no line breaks."""
    return build_edi(PURCHASE_ORDER_SEGMENTS)


@pytest.fixture(scope="session")
def purchase_order_crlf_edi() -> str:
    """The same purchase order with CRLF after every segment but the last."""
    return build_edi(PURCHASE_ORDER_SEGMENTS, "\r\n")


@pytest.fixture(scope="session")
def two_group_edi() -> str:
    """A 5010 interchange with two functional groups and LF line endings."""
    return build_edi(TWO_GROUP_SEGMENTS, "\n")


@pytest.fixture
def purchase_order_segments() -> List[str]:
    return list(PURCHASE_ORDER_SEGMENTS)


@pytest.fixture
def two_group_segments() -> List[str]:
    return list(TWO_GROUP_SEGMENTS)


@pytest.fixture
def isa_header_values() -> List[str]:
    """ISA element values as a caller would type them, before fixed-width padding."""
    return ["00", "", "00", "", "ZZ", "SENDERID", "ZZ", "RECEIVERID",
            "240715", "1200", "^", "00501", "1", "0", "P", ">"]
