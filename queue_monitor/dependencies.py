from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from queue_monitor.core.database import get_db
from queue_monitor.services.retry_dispatch import BaseRetryDispatcher, get_retry_dispatcher

# Type aliases for dependency injection
DBSession = Annotated[AsyncSession, Depends(get_db)]
RetryDispatcher = Annotated[BaseRetryDispatcher, Depends(get_retry_dispatcher)]
