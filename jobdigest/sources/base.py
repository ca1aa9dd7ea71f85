from __future__ import annotations

from abc import ABC, abstractmethod

from jobdigest.models import FilterTrace, SearchCriteria


class JobSearchBase(ABC):
    @abstractmethod
    def fetch_all_pages(
        self,
        titles: list[str],
        criteria: SearchCriteria,
        trace: FilterTrace | None = None,
    ) -> list[dict]:
        pass
