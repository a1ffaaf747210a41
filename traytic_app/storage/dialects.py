"""
SQL fragments that differ between analytics backends.

The query service writes one query per metric and asks the store's dialect
for the pieces that aren't portable: parameter placeholders, conditional
aggregates, quantiles, time buckets and relative time bounds.
"""

from abc import ABC, abstractmethod


TIME_UNITS = ("MINUTE", "HOUR", "DAY")


class SQLDialect(ABC):
    """Interface for backend-specific SQL fragments"""

    @abstractmethod
    def param(self, name: str, type_: str = "String") -> str:
        """Placeholder for a bound parameter"""

    @abstractmethod
    def uniq(self, column: str) -> str:
        """Exact distinct count"""

    @abstractmethod
    def count_if(self, condition: str) -> str:
        pass

    @abstractmethod
    def avg_if(self, column: str, condition: str) -> str:
        pass

    @abstractmethod
    def quantile(self, level: float, column: str) -> str:
        pass

    @abstractmethod
    def since(self, amount: int, unit: str) -> str:
        """Expression for `now - amount unit`, comparable with ts"""

    @abstractmethod
    def hour_bucket(self, column: str) -> str:
        pass

    @abstractmethod
    def day_bucket(self, column: str) -> str:
        pass

    @staticmethod
    def _check_interval(amount: int, unit: str):
        # Intervals are inlined, so only accept what the query service builds
        if unit not in TIME_UNITS or not isinstance(amount, int) or amount <= 0:
            raise ValueError(f"Invalid interval: {amount} {unit}")


class ClickHouseDialect(SQLDialect):
    """ClickHouse SQL, parameters bound via the HTTP interface (param_<name>)"""

    def param(self, name: str, type_: str = "String") -> str:
        return f"{{{name}:{type_}}}"

    def uniq(self, column: str) -> str:
        return f"uniqExact({column})"

    def count_if(self, condition: str) -> str:
        return f"countIf({condition})"

    def avg_if(self, column: str, condition: str) -> str:
        return f"avgIf({column}, {condition})"

    def quantile(self, level: float, column: str) -> str:
        return f"quantile({float(level)})({column})"

    def since(self, amount: int, unit: str) -> str:
        self._check_interval(amount, unit)
        return f"now() - INTERVAL {amount} {unit}"

    def hour_bucket(self, column: str) -> str:
        return f"toStartOfHour({column})"

    def day_bucket(self, column: str) -> str:
        return f"toDate({column})"


class SQLiteDialect(SQLDialect):
    """
    SQLite SQL for the development store.

    ts is stored as 'YYYY-MM-DD HH:MM:SS' text in UTC, which compares
    correctly with datetime('now', ...). quantile() is a Python aggregate
    registered on every connection.
    """

    def param(self, name: str, type_: str = "String") -> str:
        return f":{name}"

    def uniq(self, column: str) -> str:
        return f"COUNT(DISTINCT {column})"

    def count_if(self, condition: str) -> str:
        return f"SUM(CASE WHEN {condition} THEN 1 ELSE 0 END)"

    def avg_if(self, column: str, condition: str) -> str:
        return f"AVG(CASE WHEN {condition} THEN {column} END)"

    def quantile(self, level: float, column: str) -> str:
        return f"quantile({column}, {float(level)})"

    def since(self, amount: int, unit: str) -> str:
        self._check_interval(amount, unit)
        return f"datetime('now', '-{amount} {unit.lower()}s')"

    def hour_bucket(self, column: str) -> str:
        return f"strftime('%Y-%m-%d %H:00:00', {column})"

    def day_bucket(self, column: str) -> str:
        return f"date({column})"
