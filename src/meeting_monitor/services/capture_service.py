"""
Join-and-collect: подключение к медиа-потоку и окно захвата.

Последовательность:
1) запрос мониторинга ещё жив и захват по нему не запущен? иначе тихо выходим
2) колбэки кадров -> MediaCollector (фильтр по участнику)
3) старт окна захвата (CAPTURE_WINDOW_SEC)
4) join транспорта -> ActiveSession; ошибка join или занятая встреча -> reject + удаление запроса
5) по истечении окна: leave (ошибки только в лог) -> base64 -> API анализа -> settle

Окно захвата единственный триггер завершения: даже без кадров API вызывается.
Очистка реестров идемпотентна, т.к. таймаут ожидания в gateway может успеть первым.
"""

from __future__ import annotations

import asyncio

from meeting_monitor.common.config import get_settings
from meeting_monitor.common.errors import AppError, ConflictError, ErrCode, ProviderError
from meeting_monitor.common.logging import get_project_logger
from meeting_monitor.connectors.base import JoinParams, MediaTransport, TransportSession
from meeting_monitor.services.analysis_client import AnalysisApiClient, build_analysis_payload
from meeting_monitor.services.coordinator import (
    ActiveSession,
    MonitorCoordinator,
    PendingMonitorRequest,
)
from meeting_monitor.services.media_collector import MediaCollector

log = get_project_logger()


class CaptureService:
    def __init__(
        self,
        *,
        coordinator: MonitorCoordinator,
        transport: MediaTransport,
        analysis_client: AnalysisApiClient,
        capture_window_sec: float | None = None,
    ) -> None:
        self.coordinator = coordinator
        self.transport = transport
        self.analysis_client = analysis_client
        window = capture_window_sec if capture_window_sec is not None else get_settings().capture_window_sec
        self.capture_window_sec = max(0.0, float(window))

    def claim(self, meeting_uuid: str) -> PendingMonitorRequest | None:
        """
        Помечает ожидающий запрос как захватываемый. None, если запроса нет
        или окно захвата по нему уже запущено.
        """
        req = self.coordinator.get_pending(meeting_uuid)
        if req is None:
            log.info("capture_skipped_no_request", extra={"payload": {"meeting_uuid": meeting_uuid}})
            return None
        if req.capture_started:
            log.info("capture_skipped_already_running", extra={"payload": {"meeting_uuid": meeting_uuid}})
            return None
        req.capture_started = True
        return req

    async def run(self, meeting_uuid: str, rtms_stream_id: str, server_urls: str | list[str]) -> None:
        req = self.claim(meeting_uuid)
        if req is None:
            return
        await self.collect(req, rtms_stream_id, server_urls)

    async def collect(
        self,
        req: PendingMonitorRequest,
        rtms_stream_id: str,
        server_urls: str | list[str],
    ) -> None:
        meeting_uuid = req.meeting_uuid
        if self.coordinator.get_pending(meeting_uuid) is not req:
            # Запрос успели завершить между claim и стартом задачи
            log.info("capture_skipped_no_request", extra={"payload": {"meeting_uuid": meeting_uuid}})
            return

        log.info(
            "capture_starting",
            extra={"payload": {"meeting_uuid": meeting_uuid, "user_id": req.user_id}},
        )
        collector = MediaCollector(self.coordinator, req)
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.capture_window_sec

        params = JoinParams(
            meeting_uuid=meeting_uuid,
            rtms_stream_id=rtms_stream_id,
            server_urls=server_urls,
        )
        try:
            session = await self.transport.join(
                params,
                on_audio=collector.on_audio,
                on_video=collector.on_video,
            )
        except Exception as e:
            err = _as_app_error(e, ErrCode.TRANSPORT_PROVIDER_ERROR, "Ошибка подключения к медиа-потоку")
            log.error(
                "capture_join_failed",
                extra={"payload": {"meeting_uuid": meeting_uuid, "error": str(e)[:200]}},
            )
            self._abort(req, err)
            if err is e:
                raise
            raise err from e

        active = ActiveSession(
            meeting_uuid=meeting_uuid,
            rtms_stream_id=rtms_stream_id,
            server_urls=server_urls,
            session=session,
        )
        try:
            self.coordinator.add_active(active)
        except ConflictError as e:
            # Встречу ещё держит подписка предыдущего запроса
            log.error("capture_session_conflict", extra={"payload": {"meeting_uuid": meeting_uuid}})
            await self._leave_session(session)
            self._abort(req, e)
            raise

        log.info(
            "capture_joined",
            extra={
                "payload": {
                    "meeting_uuid": meeting_uuid,
                    "rtms_stream_id": rtms_stream_id,
                    "provider": session.provider,
                    "joined_at": active.joined_at.isoformat(),
                }
            },
        )

        await asyncio.sleep(max(0.0, deadline - loop.time()))
        await self._finish(req, active)

    async def _finish(self, req: PendingMonitorRequest, active: ActiveSession) -> None:
        meeting_uuid = req.meeting_uuid
        log.info(
            "capture_window_elapsed",
            extra={"payload": {"meeting_uuid": meeting_uuid, "window_sec": self.capture_window_sec}},
        )
        try:
            await self._leave(active)

            current = self.coordinator.get_pending(meeting_uuid)
            if current is req:
                audio, video = list(req.audio), list(req.video)
            else:
                audio, video = [], []
            log.info(
                "capture_collected",
                extra={
                    "payload": {
                        "meeting_uuid": meeting_uuid,
                        "audio_chunks": len(audio),
                        "video_chunks": len(video),
                    }
                },
            )

            payload = build_analysis_payload(
                meeting_uuid=meeting_uuid,
                user_id=req.user_id,
                audio=audio,
                video=video,
            )
            result = await asyncio.to_thread(self.analysis_client.submit, payload)
            if not req.resolve(result):
                log.info("capture_result_discarded", extra={"payload": {"meeting_uuid": meeting_uuid}})
        except Exception as e:
            log.error(
                "capture_processing_failed",
                extra={"payload": {"meeting_uuid": meeting_uuid, "error": str(e)[:200]}},
            )
            req.reject(_as_app_error(e, ErrCode.ANALYSIS_PROVIDER_ERROR, "Ошибка обработки окна захвата"))
        finally:
            self.coordinator.remove_active(meeting_uuid, expected=active)
            self.coordinator.remove_pending(meeting_uuid, expected=req)

    async def _leave(self, active: ActiveSession) -> None:
        # Сессию мог уже закрыть meeting.rtms_stopped
        if self.coordinator.remove_active(active.meeting_uuid, expected=active) is None:
            return
        await self._leave_session(active.session)

    async def _leave_session(self, session: TransportSession) -> None:
        try:
            await self.transport.leave(session)
            log.info("capture_left", extra={"payload": {"meeting_uuid": session.meeting_uuid}})
        except Exception as e:
            log.warning(
                "capture_leave_failed",
                extra={"payload": {"meeting_uuid": session.meeting_uuid, "error": str(e)[:200]}},
            )

    def _abort(self, req: PendingMonitorRequest, err: AppError) -> None:
        req.reject(err)
        self.coordinator.remove_pending(req.meeting_uuid, expected=req)


def _as_app_error(e: Exception, code: str, message: str) -> AppError:
    if isinstance(e, AppError):
        return e
    return ProviderError(code, message, details={"err": str(e)[:200]})
