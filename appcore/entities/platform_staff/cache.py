from __future__ import annotations

from typing import Any, Optional

from appcore.core.cache.manager import LISTING_TYPE, CacheManager

ENTITY = "platform_staff"

STAFF = ENTITY
STAFF_LIST = "platform_staff_list"
STAFF_STATS = "platform_staff_stats"
STAFF_DEPARTMENT = "platform_staff_department"
USER_STAFF = "user_platform_staff"


class PlatformStaffCacheManager(CacheManager):
    entity_name = ENTITY
    cache_group = "wp_app_core"
    default_ttl = 12 * 3600
    known_cache_types = (STAFF, STAFF_LIST, STAFF_STATS, STAFF_DEPARTMENT, USER_STAFF, LISTING_TYPE)

    def get_staff(self, staff_id: int) -> Any:
        return self.get(STAFF, staff_id)

    def set_staff(self, staff_id: int, data: Any) -> bool:
        return self.set(STAFF, data, staff_id)

    def delete_staff(self, staff_id: int) -> bool:
        return self.delete(STAFF, staff_id)

    def get_staff_list(self) -> Any:
        return self.get(STAFF_LIST, "all")

    def set_staff_list(self, data: Any) -> bool:
        return self.set(STAFF_LIST, data, "all")

    def delete_staff_list(self) -> bool:
        return self.delete(STAFF_LIST, "all")

    def get_staff_stats(self) -> Any:
        return self.get(STAFF_STATS, "summary")

    def set_staff_stats(self, data: Any) -> bool:
        # statistics go stale quickly; one hour at most
        return self.set(STAFF_STATS, data, "summary", ttl=min(self.ttl, 3600))

    def delete_staff_stats(self) -> bool:
        return self.delete(STAFF_STATS, "summary")

    def get_staff_by_department(self, department: str) -> Any:
        return self.get(STAFF_DEPARTMENT, department)

    def set_staff_by_department(self, department: str, data: Any) -> bool:
        return self.set(STAFF_DEPARTMENT, data, department)

    def delete_staff_by_department(self, department: str) -> bool:
        return self.delete(STAFF_DEPARTMENT, department)

    def get_user_staff(self, user_id: int) -> Any:
        return self.get(USER_STAFF, user_id)

    def set_user_staff(self, user_id: int, data: Any) -> bool:
        return self.set(USER_STAFF, data, user_id)

    def delete_user_staff(self, user_id: int) -> bool:
        return self.delete(USER_STAFF, user_id)

    def clear_staff_cache(self) -> bool:
        ok = True
        for cache_type in self.known_cache_types:
            ok = self.clear(cache_type) and ok
        return ok

    def clear_specific(
        self,
        staff_id: Optional[int],
        user_id: Optional[int] = None,
        department: Optional[str] = None,
    ) -> None:
        """Drop everything derived from one staff row, plus the aggregates."""
        if staff_id is not None:
            self.delete_staff(staff_id)
        if user_id:
            self.delete_user_staff(user_id)
        if department:
            self.delete_staff_by_department(department)
        self.delete_staff_list()
        self.delete_staff_stats()
        self.invalidate_listing_cache(ENTITY)
