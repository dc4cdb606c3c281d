"""
已占用 bundle 标识的登记表。

同一次运行内标识一旦登记就不会释放；登记时可附带占用者（目标名），
便于同一目标的多个构建配置复用同一个标识。
"""

from __future__ import annotations

from collections.abc import Iterator

MAIN_OWNER = "<main>"
TEST_OWNER = "<tests>"


class IdentifierRegistry:
    """以主标识与测试标识预先初始化的标识集合。"""

    def __init__(self, main_id: str, test_id: str) -> None:
        self._owners: dict[str, str] = {}
        self.claim(main_id, MAIN_OWNER)
        self.claim(test_id, TEST_OWNER)

    def is_claimed(self, identifier: str) -> bool:
        return identifier in self._owners

    def claim(self, identifier: str, owner: str = "") -> None:
        """登记标识；重复登记保持首个占用者不变。"""
        self._owners.setdefault(identifier, owner)

    def owner_of(self, identifier: str) -> str | None:
        return self._owners.get(identifier)

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._owners

    def __iter__(self) -> Iterator[str]:
        return iter(self._owners)

    def __len__(self) -> int:
        return len(self._owners)
