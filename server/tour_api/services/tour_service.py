"""Tour service: persistence and versioning of tour aggregates and their stops."""

import logging
from typing import Awaitable, Callable, Optional, TypeVar
from uuid import UUID

from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import flag_modified
from sqlalchemy.orm.exc import StaleDataError

from ..core.config import settings
from ..core.exceptions import NotFoundError, ProblemDetailsException, VersionConflictError
from ..core.observability import metrics_collector
from ..models.tour import Tour, utcnow
from ..schemas.stop import Stop, UpdateStopRequest
from ..schemas.tour import CreateTourRequest, ReplaceTourRequest, TourSummary

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TourService:
    """Service for tour-related operations."""

    def __init__(self, db: AsyncSession, max_write_attempts: Optional[int] = None):
        self.db = db
        self.max_write_attempts = max_write_attempts or settings.max_write_attempts

    async def create_tour(self, request: CreateTourRequest) -> Tour:
        """
        Create a new tour.

        Args:
            request: Tour creation request

        Returns:
            Created tour with version 0 and no stops
        """
        tour = Tour(
            title=request.title,
            activities=list(request.activities),
            launch_date=request.launch_date or utcnow(),
            stops=[],
        )

        self.db.add(tour)
        await self.db.commit()
        await self.db.refresh(tour)

        metrics_collector.record_tour_created()
        logger.info(
            "Tour created successfully",
            extra={
                "tour_id": str(tour.id),
                "title": tour.title,
                "version": tour.version
            }
        )

        return tour

    async def list_tours(self) -> list[TourSummary]:
        """
        List all tours in creation order, projected to id, title and launch date.

        Only the projected columns are selected; activities and stops are
        never loaded for list reads.
        """
        stmt = (
            select(Tour.id, Tour.title, Tour.launch_date)
            .order_by(Tour.seq)
        )
        result = await self.db.execute(stmt)

        return [
            TourSummary(id=str(row.id), title=row.title, launch_date=row.launch_date)
            for row in result
        ]

    async def get_tour_by_id(self, tour_id: UUID) -> Optional[Tour]:
        """
        Get tour by ID.

        Args:
            tour_id: Tour ID to search for

        Returns:
            Tour if found, None otherwise
        """
        stmt = select(Tour).where(Tour.id == tour_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_tour_by_id_or_raise(self, tour_id: UUID) -> Tour:
        """
        Get tour by ID or raise NotFoundError.

        Args:
            tour_id: Tour ID to search for

        Returns:
            Tour entity

        Raises:
            NotFoundError: If tour not found
        """
        tour = await self.get_tour_by_id(tour_id)
        if not tour:
            logger.warning(
                "Tour not found",
                extra={"tour_id": str(tour_id)}
            )
            raise NotFoundError(
                resource_type="tour",
                resource_id=str(tour_id)
            )
        return tour

    async def ensure_tour_exists(self, tour_id: UUID) -> None:
        """
        Check that a tour exists and end the read transaction.

        Used before slow work that must not hold a database connection, such
        as stop enrichment against the lookup providers.

        Raises:
            NotFoundError: If tour not found
        """
        try:
            await self.get_tour_by_id_or_raise(tour_id)
        finally:
            await self.db.rollback()

    async def get_tour_with_lock(self, tour_id: UUID) -> Tour:
        """
        Load the current state of a tour for modification.

        On PostgreSQL a transaction-scoped advisory lock serializes writers of
        the same tour; it is released when the transaction ends. Other
        backends rely on the versioned UPDATE alone.

        Raises:
            NotFoundError: If tour not found
        """
        if self.db.bind is not None and self.db.bind.dialect.name == "postgresql":
            await self.db.execute(
                text("SELECT pg_advisory_xact_lock(hashtext(:tour_id))"),
                {"tour_id": str(tour_id)}
            )

        stmt = (
            select(Tour)
            .where(Tour.id == tour_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        tour = result.scalar_one_or_none()
        if not tour:
            logger.warning(
                "Tour not found for update",
                extra={"tour_id": str(tour_id)}
            )
            raise NotFoundError(
                resource_type="tour",
                resource_id=str(tour_id)
            )
        return tour

    async def replace_tour(self, tour_id: UUID, request: ReplaceTourRequest) -> Tour:
        """
        Replace a tour's title and activities.

        ``id``, ``launch_date`` and ``stops`` are left as stored. When the
        request carries a version it must equal the stored one.

        Raises:
            NotFoundError: If tour not found
            VersionConflictError: If the request's version is stale
        """

        async def replace(tour: Tour) -> Tour:
            if request.version is not None and request.version != tour.version:
                raise VersionConflictError(
                    str(tour.id),
                    current_version=tour.version,
                    expected_version=request.version,
                )
            tour.title = request.title
            tour.activities = list(request.activities)
            return tour

        tour = await self._write(tour_id, "replace", replace)

        logger.info(
            "Tour replaced successfully",
            extra={
                "tour_id": str(tour_id),
                "version": tour.version
            }
        )
        return tour

    async def delete_tour(self, tour_id: UUID) -> None:
        """
        Delete a tour together with its embedded stops.

        Raises:
            NotFoundError: If tour not found
        """

        async def delete(tour: Tour) -> None:
            await self.db.delete(tour)

        await self._write(tour_id, "delete", delete)

        metrics_collector.record_tour_deleted()
        logger.info("Tour deleted successfully", extra={"tour_id": str(tour_id)})

    async def add_stop(self, tour_id: UUID, stop: Stop) -> Tour:
        """
        Append an enriched stop to a tour.

        Raises:
            NotFoundError: If tour not found
        """

        async def add(tour: Tour) -> Tour:
            stops = self._load_stops(tour)
            stops.append(stop)
            self._store_stops(tour, stops)
            return tour

        tour = await self._write(tour_id, "add_stop", add)

        metrics_collector.record_stop_mutation("add")
        logger.info(
            "Stop added to tour",
            extra={
                "tour_id": str(tour_id),
                "stop_id": stop.id,
                "postal_code": stop.location.postal_code,
                "stop_count": len(tour.stops),
                "version": tour.version
            }
        )
        return tour

    async def update_stop(self, tour_id: UUID, stop_id: str, patch: UpdateStopRequest) -> Stop:
        """
        Apply whitelisted fields to an embedded stop.

        Only ``attendance`` is patchable; enrichment data cannot be changed
        through this operation.

        Raises:
            NotFoundError: If the tour or the stop within it does not exist
        """

        async def update(tour: Tour) -> Stop:
            stops = self._load_stops(tour)
            index = self._stop_index(tour, stops, stop_id)
            stops[index] = stops[index].model_copy(update=patch.model_dump(exclude_unset=True))
            self._store_stops(tour, stops)
            return stops[index]

        stop = await self._write(tour_id, "update_stop", update)

        metrics_collector.record_stop_mutation("update")
        logger.info(
            "Stop updated",
            extra={
                "tour_id": str(tour_id),
                "stop_id": stop_id,
                "attendance": stop.attendance
            }
        )
        return stop

    async def remove_stop(self, tour_id: UUID, stop_id: str) -> Tour:
        """
        Remove an embedded stop from a tour.

        Raises:
            NotFoundError: If the tour or the stop within it does not exist
        """

        async def remove(tour: Tour) -> Tour:
            stops = self._load_stops(tour)
            del stops[self._stop_index(tour, stops, stop_id)]
            self._store_stops(tour, stops)
            return tour

        tour = await self._write(tour_id, "remove_stop", remove)

        metrics_collector.record_stop_mutation("remove")
        logger.info(
            "Stop removed from tour",
            extra={
                "tour_id": str(tour_id),
                "stop_id": stop_id,
                "stop_count": len(tour.stops),
                "version": tour.version
            }
        )
        return tour

    async def _write(self, tour_id: UUID, operation: str, mutate: Callable[[Tour], Awaitable[T]]) -> T:
        """
        Run one read-modify-write of a tour in its own transaction.

        The flush issues ``UPDATE ... WHERE id = :id AND version = :old``. If a
        concurrent writer committed first, no row matches, SQLAlchemy raises
        ``StaleDataError`` and the whole mutation is replayed on fresh state.

        A mutation rejected with a ``ProblemDetailsException`` is rolled back,
        which expires every instance loaded in the session; callers must not
        read attributes of tours they held before the call.
        """
        attempt = 0
        while True:
            attempt += 1
            tour = await self.get_tour_with_lock(tour_id)
            try:
                result = await mutate(tour)
            except ProblemDetailsException:
                await self.db.rollback()
                raise

            if tour not in self.db.deleted:
                tour.updated_at = utcnow()

            try:
                await self.db.commit()
            except StaleDataError:
                await self.db.rollback()
                if attempt == self.max_write_attempts:
                    metrics_collector.record_version_conflict("rejected")
                    logger.error(
                        "Tour write abandoned after repeated version conflicts",
                        extra={
                            "tour_id": str(tour_id),
                            "operation": operation,
                            "attempts": attempt
                        }
                    )
                    raise VersionConflictError(str(tour_id))

                metrics_collector.record_version_conflict("retried")
                logger.warning(
                    "Tour write lost a version race, retrying",
                    extra={
                        "tour_id": str(tour_id),
                        "operation": operation,
                        "attempt": attempt
                    }
                )
                continue

            return result

    @staticmethod
    def _load_stops(tour: Tour) -> list[Stop]:
        return [Stop.model_validate(stop) for stop in tour.stops or []]

    @staticmethod
    def _store_stops(tour: Tour, stops: list[Stop]) -> None:
        tour.stops = [stop.model_dump(mode="json") for stop in stops]
        # JSON columns are not mutation-tracked; mark the change explicitly
        flag_modified(tour, "stops")

    @staticmethod
    def _stop_index(tour: Tour, stops: list[Stop], stop_id: str) -> int:
        for index, stop in enumerate(stops):
            if stop.id == stop_id:
                return index

        logger.warning(
            "Stop not found",
            extra={"tour_id": str(tour.id), "stop_id": stop_id}
        )
        raise NotFoundError(
            resource_type="stop",
            resource_id=stop_id,
            detail=f"Tour '{tour.id}' has no stop with ID '{stop_id}'"
        )
