from typing import Dict, List, Optional

from src.core.exceptions import MetadataPersistenceError
from src.database.models.material import Course, MaterialLocation, MaterialRecord


class FakeMaterialStore:
    """In-memory stand-in for ``MaterialStore`` with the same async interface.

    Courses are kept as the raw dictionaries MongoDB would hold. Operation
    names listed in ``failing`` raise ``MetadataPersistenceError``.
    """

    def __init__(self):
        self.courses: Dict[str, dict] = {}
        self.failing: set = set()

    def add_course(
        self, course_id: str, course_name: str, divisions: Dict[str, List[str]]
    ) -> None:
        self.courses[course_id] = {
            "id": course_id,
            "courseName": course_name,
            "topicOrWeekInstances": [
                {
                    "id": division_id,
                    "title": division_id,
                    "items": [
                        {"id": item_id, "itemTitle": item_id, "additionalMaterials": []}
                        for item_id in item_ids
                    ],
                }
                for division_id, item_ids in divisions.items()
            ],
        }

    def _check(self, operation: str) -> None:
        if operation in self.failing:
            raise MetadataPersistenceError(
                f"Failed to {operation.replace('_', ' ')}: simulated outage",
                operation=operation,
            )

    def _item(self, course_id: str, division_id: str, item_id: str) -> Optional[dict]:
        course = self.courses.get(course_id)
        if course is None:
            return None
        for instance in course["topicOrWeekInstances"]:
            if instance["id"] != division_id:
                continue
            for item in instance["items"]:
                if item["id"] == item_id:
                    return item
        return None

    def materials_of(self, course_id: str, division_id: str, item_id: str) -> List[dict]:
        item = self._item(course_id, division_id, item_id)
        return [] if item is None else item["additionalMaterials"]

    async def find_course(self, course_id: str) -> Optional[Course]:
        self._check("find_course")
        course = self.courses.get(course_id)
        return None if course is None else Course.model_validate(course)

    async def list_materials(self, course_id: str) -> List[MaterialLocation]:
        course = await self.find_course(course_id)
        return [] if course is None else course.materials()

    async def find_material(
        self, course_id: str, division_id: str, item_id: str, material_id: str
    ) -> Optional[MaterialLocation]:
        for location in await self.list_materials(course_id):
            if (
                location.division_id == division_id
                and location.item_id == item_id
                and location.material.id == material_id
            ):
                return location
        return None

    async def append_material(
        self, course_id: str, division_id: str, item_id: str, record: MaterialRecord
    ) -> bool:
        self._check("append_material")
        item = self._item(course_id, division_id, item_id)
        if item is None:
            return False
        item["additionalMaterials"].append(record.to_dict())
        return True

    async def remove_material(
        self, course_id: str, division_id: str, item_id: str, material_id: str
    ) -> bool:
        self._check("remove_material")
        item = self._item(course_id, division_id, item_id)
        if item is None:
            return False
        before = len(item["additionalMaterials"])
        item["additionalMaterials"] = [
            m for m in item["additionalMaterials"] if m.get("id") != material_id
        ]
        return len(item["additionalMaterials"]) < before

    async def clear_all(self, course_id: str) -> bool:
        self._check("clear_all_materials")
        course = self.courses.get(course_id)
        if course is None:
            return False
        for instance in course["topicOrWeekInstances"]:
            for item in instance["items"]:
                item["additionalMaterials"] = []
        return True

    async def ping(self) -> bool:
        self._check("ping")
        return True
