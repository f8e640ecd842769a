import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from src.constants import DEFAULT_UPLOADED_BY

logger = logging.getLogger(__name__)


class CamelModel(BaseModel):
    """Stored and serialized with camelCase keys, populated by either name."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore"
    )

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class MaterialRecord(CamelModel):
    """Queryable projection of an ingested document. Never holds raw content."""

    id: str = Field(..., description="Content-addressed document ID")
    date: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Time of ingestion",
    )
    name: str = Field(..., description="Display name of the material")
    course_name: str = ""
    topic_or_week_title: str = ""
    item_title: str = ""
    source_type: str = Field(..., description="file or text")
    file_name: Optional[str] = Field(None, description="Original filename on upload")
    uploaded: bool = Field(False, description="True once vectors and record both exist")
    qdrant_id: Optional[str] = Field(None, description="ID of the first chunk")
    chunks_generated: int = Field(0, description="Number of chunks in the vector store")
    vector_ids: List[str] = Field(default_factory=list)
    uploaded_by: str = DEFAULT_UPLOADED_BY


class MaterialLocation(CamelModel):
    """A material record together with the course position it lives at."""

    course_id: str
    division_id: str
    item_id: str
    material: MaterialRecord


class MalformedMaterial(CamelModel):
    """A listed material entry that does not parse as a ``MaterialRecord``."""

    course_id: str
    division_id: str
    item_id: str
    material_id: Optional[str] = None
    error: str


class CourseItem(CamelModel):
    id: str
    item_title: Optional[str] = None
    title: Optional[str] = None
    # Raw entries, validated one by one so a partial legacy record stays readable
    additional_materials: List[Any] = Field(default_factory=list)


class TopicOrWeekInstance(CamelModel):
    id: str
    title: Optional[str] = None
    items: List[CourseItem] = Field(default_factory=list)


class Course(CamelModel):
    """The parts of an externally owned course document this service reads."""

    id: str
    course_name: Optional[str] = None
    topic_or_week_instances: List[TopicOrWeekInstance] = Field(default_factory=list)

    def _scan(self) -> Tuple[List[MaterialLocation], List[MalformedMaterial]]:
        valid: List[MaterialLocation] = []
        malformed: List[MalformedMaterial] = []
        for instance in self.topic_or_week_instances:
            for item in instance.items:
                for raw in item.additional_materials:
                    try:
                        material = MaterialRecord.model_validate(raw)
                    except ValidationError as e:
                        raw_id = raw.get("id") if isinstance(raw, dict) else None
                        malformed.append(
                            MalformedMaterial(
                                course_id=self.id,
                                division_id=instance.id,
                                item_id=item.id,
                                material_id=raw_id if isinstance(raw_id, str) else None,
                                error="Malformed material record, invalid fields: "
                                + ", ".join(
                                    ".".join(str(part) for part in error["loc"])
                                    for error in e.errors()
                                ),
                            )
                        )
                        continue
                    valid.append(
                        MaterialLocation(
                            course_id=self.id,
                            division_id=instance.id,
                            item_id=item.id,
                            material=material,
                        )
                    )
        for entry in malformed:
            logger.warning(
                f"Skipping malformed material record '{entry.material_id}' in course "
                f"'{self.id}' item '{entry.item_id}': {entry.error}"
            )
        return valid, malformed

    def materials(self) -> List[MaterialLocation]:
        """Valid material records; malformed ones are logged and skipped."""
        return self._scan()[0]

    def malformed_materials(self) -> List[MalformedMaterial]:
        return self._scan()[1]

    def material_ids(self) -> Set[str]:
        """Ids of every listed record, malformed ones included when they carry an id."""
        valid, malformed = self._scan()
        ids = {location.material.id for location in valid}
        ids.update(entry.material_id for entry in malformed if entry.material_id)
        return ids
