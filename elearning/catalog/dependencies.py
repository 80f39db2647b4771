"""FastAPI dependencies for catalog readers."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .reader import CatalogReader


async def get_catalog_reader(request: Request) -> CatalogReader:
    reader = getattr(request.app.state, "catalog_reader", None)
    if reader is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Catalog not available",
        )
    return reader


CatalogReaderDep = Annotated[CatalogReader, Depends(get_catalog_reader)]
