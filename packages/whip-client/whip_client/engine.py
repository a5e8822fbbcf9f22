"""aiortc-backed MediaEngine for publishing.

Builds one RTCPeerConnection per open() with send-only transceivers for the
attached tracks, and reports connection/signaling state changes to the
registered callbacks.
"""

from __future__ import annotations

import asyncio
import logging

from aiortc import RTCConfiguration, RTCPeerConnection, RTCRtpSender, RTCSessionDescription
from aiortc.exceptions import InvalidAccessError, InvalidStateError

from whip_client.errors import NegotiationError
from whip_client.ice import ICEProvider, StaticICE, ice_servers_to_rtc
from whip_client.media import MediaEngine, MediaSender, SenderParameters, StateCallback

log = logging.getLogger("whip_client.engine")

_AIORTC_ERRORS = (InvalidAccessError, InvalidStateError, ValueError)


class AiortcSender(MediaSender):
    """Wraps an aiortc RTCRtpSender.

    aiortc has no RTCRtpSender.setParameters, and it only creates the encoder
    once the first frame is sent. set_parameters() records the cap and starts
    a small governor task: it applies the cap to each new encoder as soon as
    one appears, and pulls REMB-driven raises back under the cap (REMB may
    still lower the bitrate). Encoders without a target_bitrate (Opus) end
    the governor.

    Muting toggles the ``enabled`` flag of tracks that support it
    (capture.PacedAudioTrack does).
    """

    def __init__(self, sender: RTCRtpSender, kind: str, poll_interval: float = 0.25):
        self._sender = sender
        self.kind = kind
        self.parameters: SenderParameters | None = None
        self._poll_interval = poll_interval
        self._governor: asyncio.Task | None = None
        self._capped_encoder = None

    def set_parameters(self, params: SenderParameters):
        self.parameters = params
        encoder = self._encoder()
        if encoder is not None and hasattr(encoder, "target_bitrate"):
            self._apply(encoder)
        if self._governor is None or self._governor.done():
            self._governor = asyncio.get_running_loop().create_task(self._govern())

    def close(self):
        """Stop the governor. Safe to call repeatedly."""
        governor, self._governor = self._governor, None
        if governor is not None and not governor.done():
            governor.cancel()

    def _encoder(self):
        # aiortc keeps the encoder private and creates it lazily
        return getattr(self._sender, "_RTCRtpSender__encoder", None)

    def _apply(self, encoder):
        encoder.target_bitrate = self.parameters.max_bitrate_bps
        self._capped_encoder = encoder
        log.debug("%s encoder bitrate -> %d", self.kind, encoder.target_bitrate)

    async def _govern(self):
        while True:
            encoder = self._encoder()
            if encoder is not None:
                if not hasattr(encoder, "target_bitrate"):
                    return
                if encoder is not self._capped_encoder:
                    self._apply(encoder)
                elif encoder.target_bitrate > self.parameters.max_bitrate_bps:
                    log.debug("%s REMB raised bitrate to %d, capping", self.kind, encoder.target_bitrate)
                    self._apply(encoder)
            await asyncio.sleep(self._poll_interval)

    def set_enabled(self, enabled: bool):
        track = self._sender.track
        if track is None:
            return
        if not hasattr(track, "enabled"):
            log.warning("%s track %r cannot be muted", self.kind, track)
            return
        track.enabled = enabled


def _codec_preferences(codec: str) -> list:
    capabilities = RTCRtpSender.getCapabilities("video")
    mime = f"video/{codec}".lower()
    preferred = [c for c in capabilities.codecs if c.mimeType.lower() == mime]
    if not preferred:
        raise NegotiationError(f"Unsupported video codec: {codec!r}")
    rtx = [c for c in capabilities.codecs if c.mimeType.lower() == "video/rtx"]
    return preferred + rtx


class AiortcMediaEngine(MediaEngine):
    """Publish-only peer connection around caller-supplied tracks."""

    def __init__(self, audio_track=None, video_track=None, ice_provider: ICEProvider | None = None):
        self._audio_track = audio_track
        self._video_track = video_track
        self._ice_provider = ice_provider or StaticICE()
        self._pc: RTCPeerConnection | None = None
        self._transceivers = []
        self._senders: list[AiortcSender] = []
        self._signaling_callbacks: list[StateCallback] = []
        self._connection_callbacks: list[StateCallback] = []
        self._open_lock = asyncio.Lock()

    async def open(self, video_codec: str):
        async with self._open_lock:
            await self._open(video_codec)

    async def _open(self, video_codec: str):
        await self.close()

        servers = ice_servers_to_rtc(await self._ice_provider.fetch_ice_servers())
        config = RTCConfiguration(iceServers=servers) if servers else RTCConfiguration()
        pc = RTCPeerConnection(configuration=config)
        self._pc = pc

        @pc.on("connectionstatechange")
        async def on_conn_state():
            log.info("Connection state: %s", pc.connectionState)
            if pc is self._pc:
                self._notify(self._connection_callbacks, pc.connectionState)

        @pc.on("signalingstatechange")
        async def on_signaling_state():
            log.debug("Signaling state: %s", pc.signalingState)
            if pc is self._pc:
                self._notify(self._signaling_callbacks, pc.signalingState)

        @pc.on("iceconnectionstatechange")
        async def on_ice_state():
            log.info("ICE connection state: %s", pc.iceConnectionState)

        if self._audio_track is not None:
            transceiver = pc.addTransceiver(self._audio_track, direction="sendonly")
            self._transceivers.append(transceiver)
            self._senders.append(AiortcSender(transceiver.sender, "audio"))

        if self._video_track is not None:
            transceiver = pc.addTransceiver(self._video_track, direction="sendonly")
            transceiver.setCodecPreferences(_codec_preferences(video_codec))
            self._transceivers.append(transceiver)
            self._senders.append(AiortcSender(transceiver.sender, "video"))

        log.info("Peer connection opened (%d senders, codec %s)", len(self._senders), video_codec)

    async def create_offer(self, receive_audio=False, receive_video=False):
        pc = self._require_pc()
        receive = {"audio": receive_audio, "video": receive_video}
        for transceiver in self._transceivers:
            transceiver.direction = "sendrecv" if receive.get(transceiver.kind) else "sendonly"
        try:
            offer = await pc.createOffer()
        except _AIORTC_ERRORS as e:
            raise NegotiationError(f"Failed to create offer: {e}") from e
        return offer.sdp

    async def set_local_description(self, sdp):
        pc = self._require_pc()
        try:
            await pc.setLocalDescription(RTCSessionDescription(sdp=sdp, type="offer"))
        except _AIORTC_ERRORS as e:
            raise NegotiationError(f"Failed to set local description: {e}") from e
        # aiortc gathers candidates here, so the applied SDP is the one to publish.
        return pc.localDescription.sdp

    async def set_remote_description(self, sdp):
        pc = self._require_pc()
        try:
            await pc.setRemoteDescription(RTCSessionDescription(sdp=sdp, type="answer"))
        except _AIORTC_ERRORS as e:
            raise NegotiationError(f"Failed to set remote description: {e}") from e

    def list_senders(self):
        return list(self._senders)

    def on_signaling_state_change(self, callback):
        self._signaling_callbacks.append(callback)

    def on_connection_state_change(self, callback):
        self._connection_callbacks.append(callback)

    @property
    def ice_connection_state(self):
        return self._pc.iceConnectionState if self._pc is not None else None

    async def close(self):
        pc, self._pc = self._pc, None
        for sender in self._senders:
            sender.close()
        self._transceivers = []
        self._senders = []
        if pc is not None:
            await pc.close()
            log.info("Peer connection closed")

    def _require_pc(self) -> RTCPeerConnection:
        if self._pc is None:
            raise NegotiationError("Peer connection is not open")
        return self._pc

    @staticmethod
    def _notify(callbacks: list[StateCallback], state: str):
        for callback in list(callbacks):
            callback(state)
