import httpx
import logging
from typing import Any, Dict, List, Optional

from app.core.config import settings
from app.tracking.reconciliation import ProgressUpdate

logger = logging.getLogger(__name__)


class ProgressSyncService:
    """
    Cliente HTTP del reproductor para el API de progreso de video.

    Los errores de red se registran y se devuelven como None; no hay
    reintentos porque el siguiente tick vuelve a enviar los valores acumulados.
    """

    def __init__(
        self,
        access_token: str,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.API_BASE_URL).rstrip('/')
        self.timeout = timeout or settings.SYNC_TIMEOUT_SECONDS
        self.transport = transport
        self.headers = {'Authorization': f'Bearer {access_token}'}

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=self.headers,
            timeout=self.timeout,
            transport=self.transport,
        )

    async def _request(self, method: str, path: str, **kwargs) -> Optional[Any]:
        try:
            async with self._client() as client:
                response = await client.request(method, path, **kwargs)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(
                f"Error de sincronización {method} {path}: HTTP {e.response.status_code}"
            )
            return None
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Error de sincronización {method} {path}: {str(e)}")
            return None

        if not body.get('success'):
            logger.warning(f"Respuesta sin éxito en {method} {path}: {body.get('message')}")
            return None
        return body.get('data')

    async def fetch_progress(self, course_id: str, video_id: str) -> Optional[Dict[str, Any]]:
        """
        Obtiene el registro de progreso guardado (o el registro en cero)
        """
        return await self._request('GET', f'/video-progress/{course_id}/{video_id}')

    async def push_progress(
        self, course_id: str, video_id: str, update: ProgressUpdate
    ) -> Optional[Dict[str, Any]]:
        """
        Envía una actualización; el servidor la combina de forma monótona
        """
        record = await self._request(
            'PUT', f'/video-progress/{course_id}/{video_id}', json=update.to_payload()
        )
        if record is not None:
            logger.debug(
                f"Progreso sincronizado: video={video_id}, progress={record.get('progress')}%, "
                f"watch_time={record.get('total_watch_time')}"
            )
        return record

    async def fetch_course_progress(self, course_id: str) -> Optional[List[Dict[str, Any]]]:
        return await self._request('GET', f'/video-progress/course/{course_id}')

    async def reset_progress(
        self, video_id: str, course_id: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        params = {'course_id': course_id} if course_id else None
        return await self._request('DELETE', f'/video-progress/{video_id}', params=params)
