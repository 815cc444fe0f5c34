"""
Country service for persistence operations.

Backs the import pipeline's store collaborator with the Supabase
countries table.
"""

from typing import Optional, Protocol
import structlog

from config import get_supabase_client, settings
from models.country import CountryCreate, CountryUpdate, CountryResponse
from exceptions import (
    CountryNotFoundError,
    CountryCodeExistsError,
    DatabaseError
)

logger = structlog.get_logger(__name__)


class CountryStore(Protocol):
    """The three store operations the import pipeline depends on."""

    def list_all(self) -> list[CountryResponse]: ...

    def create(self, data: CountryCreate) -> CountryResponse: ...

    def update(self, country_id: str, data: CountryUpdate) -> CountryResponse: ...


class CountryService:
    """
    Country persistence.

    Handles read and write operations for the countries table.
    """

    def __init__(self):
        self.db = get_supabase_client()
        self.table = settings.countries_table

    # ===================
    # READ OPERATIONS
    # ===================

    def list_all(self) -> list[CountryResponse]:
        """
        Get every stored country, ordered by name.

        Returns:
            List of CountryResponse
        """
        logger.info("getting_all_countries")

        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .order("name")
                .execute()
            )

            countries = [CountryResponse(**row) for row in result.data]

            logger.info("countries_retrieved", count=len(countries))

            return countries

        except Exception as e:
            logger.error(
                "get_countries_failed",
                error=str(e)
            )
            raise DatabaseError("select", str(e))

    def get_by_id(self, country_id: str) -> CountryResponse:
        """
        Get a single country by ID.

        Raises:
            CountryNotFoundError: If country doesn't exist
        """
        logger.debug("getting_country", country_id=country_id)

        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .eq("id", country_id)
                .execute()
            )

            if not result.data:
                raise CountryNotFoundError(country_id)

            return CountryResponse(**result.data[0])

        except CountryNotFoundError:
            raise
        except Exception as e:
            logger.error(
                "get_country_failed",
                country_id=country_id,
                error=str(e)
            )
            raise DatabaseError("select", str(e))

    def get_by_code(self, code: str) -> Optional[CountryResponse]:
        """
        Get a country by its 2-letter code.

        Returns:
            CountryResponse or None if not found
        """
        logger.debug("getting_country_by_code", code=code)

        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .eq("code", code.upper())
                .execute()
            )

            if not result.data:
                return None

            return CountryResponse(**result.data[0])

        except Exception as e:
            logger.error(
                "get_country_by_code_failed",
                code=code,
                error=str(e)
            )
            raise DatabaseError("select", str(e))

    # ===================
    # WRITE OPERATIONS
    # ===================

    def create(self, data: CountryCreate) -> CountryResponse:
        """
        Create a new country.

        Raises:
            CountryCodeExistsError: If code already exists
        """
        logger.info("creating_country", code=data.code)

        if self.get_by_code(data.code):
            raise CountryCodeExistsError(data.code)

        try:
            insert_data = data.model_dump(mode="json")

            result = (
                self.db.table(self.table)
                .insert(insert_data)
                .execute()
            )

            country = CountryResponse(**result.data[0])

            logger.info(
                "country_created",
                country_id=country.id,
                code=country.code
            )

            return country

        except Exception as e:
            logger.error(
                "create_country_failed",
                code=data.code,
                error=str(e)
            )
            raise DatabaseError("insert", str(e))

    def update(self, country_id: str, data: CountryUpdate) -> CountryResponse:
        """
        Update an existing country. Only provided fields are written.

        Raises:
            CountryNotFoundError: If country doesn't exist
        """
        logger.info("updating_country", country_id=country_id)

        existing = self.get_by_id(country_id)

        update_data = data.model_dump(mode="json", exclude_none=True)
        if not update_data:
            # Nothing to update, return existing
            return existing

        try:
            result = (
                self.db.table(self.table)
                .update(update_data)
                .eq("id", country_id)
                .execute()
            )

            country = CountryResponse(**result.data[0])

            logger.info(
                "country_updated",
                country_id=country_id,
                fields=list(update_data.keys())
            )

            return country

        except Exception as e:
            logger.error(
                "update_country_failed",
                country_id=country_id,
                error=str(e)
            )
            raise DatabaseError("update", str(e))


# Singleton instance for convenience
_country_service: Optional[CountryService] = None

def get_country_service() -> CountryService:
    """Get or create CountryService instance."""
    global _country_service
    if _country_service is None:
        _country_service = CountryService()
    return _country_service
