import sys
from pathlib import Path


def _add_src_to_path() -> None:
    root = Path(__file__).resolve().parents[1]
    src_path = root / "src"
    if str(src_path) not in sys.path:
        sys.path.insert(0, str(src_path))


_add_src_to_path()


import pytest  # noqa: E402

CATALOG_XML = """<?xml version="1.0" encoding="UTF-8"?>
<Weakness_Catalog xmlns="http://cwe.mitre.org/cwe-7" Name="CWE" Version="4.10">
  <Weaknesses>
    <Weakness ID="79" Name="Improper Neutralization of Input During Web Page Generation ('Cross-site Scripting')" Abstraction="Base">
      <Description>The product does not neutralize or incorrectly neutralizes
        user-controllable input before it is placed in output.</Description>
    </Weakness>
    <Weakness ID="787" Name="Out-of-bounds Write" Abstraction="Base">
      <Description>The product writes data past the end, or before the beginning, of the intended buffer.</Description>
    </Weakness>
  </Weaknesses>
  <Categories>
    <Category ID="189" Name="Numeric Errors">
      <Summary>Weaknesses in this category are related to improper calculation or conversion of numbers.</Summary>
    </Category>
  </Categories>
</Weakness_Catalog>
"""


@pytest.fixture
def taxonomy_path(tmp_path: Path) -> Path:
    path = tmp_path / "cwe_list.xml"
    path.write_text(CATALOG_XML, encoding="utf-8")
    return path
