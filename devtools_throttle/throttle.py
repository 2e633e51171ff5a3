import logging
import math
from dataclasses import dataclass, fields, replace

from devtools_throttle.channel import Unsupported
from devtools_throttle.errors import ChannelUnavailable

logger = logging.getLogger(__name__)

DEFAULT_CPU_RATE = 2  # 1 = no throttle, 2 ~ 2x slower CPU
DEFAULT_LATENCY_MS = 100
DEFAULT_DOWNLOAD_BPS = math.floor(3 * 1024 * 1024 / 8)  # ~3 Mbps
DEFAULT_UPLOAD_BPS = math.floor(1.5 * 1024 * 1024 / 8)  # ~1.5 Mbps
DEFAULT_CONNECTION_TYPE = 'cellular4g'

CPU_COMMAND = 'Emulation.setCPUThrottlingRate'
NETWORK_ENABLE_COMMAND = 'Network.enable'
NETWORK_CONDITIONS_COMMAND = 'Network.emulateNetworkConditions'


@dataclass(frozen=True)
class ThrottleProfile:
    cpu_rate: float = DEFAULT_CPU_RATE
    latency_ms: float = DEFAULT_LATENCY_MS
    download_bps: float = DEFAULT_DOWNLOAD_BPS
    upload_bps: float = DEFAULT_UPLOAD_BPS
    connection_type: str = DEFAULT_CONNECTION_TYPE

    def __post_init__(self):
        if self.cpu_rate < 1:
            raise ValueError('cpu_rate must be >= 1, got {!r}'.format(self.cpu_rate))
        if self.latency_ms < 0:
            raise ValueError('latency_ms must be >= 0, got {!r}'.format(self.latency_ms))
        if self.download_bps <= 0:
            raise ValueError('download_bps must be > 0, got {!r}'.format(self.download_bps))
        if self.upload_bps <= 0:
            raise ValueError('upload_bps must be > 0, got {!r}'.format(self.upload_bps))

    @classmethod
    def resolve(cls, profile=None):
        """Fill the unset fields of a partial profile with defaults.

        Accepts None, a ThrottleProfile, or a mapping of field names to
        values. Unknown field names raise TypeError.
        """
        if profile is None:
            return cls()
        if isinstance(profile, cls):
            return profile
        names = {f.name for f in fields(cls)}
        unknown = set(profile) - names
        if unknown:
            raise TypeError('unknown profile fields: {}'.format(', '.join(sorted(unknown))))
        return cls(**{k: v for k, v in profile.items() if v is not None})

    def override(self, **changes):
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    def network_conditions(self):
        return {
            'offline': False,
            'latency': self.latency_ms,
            'downloadThroughput': self.download_bps,
            'uploadThroughput': self.upload_bps,
            'connectionType': self.connection_type,
        }


PRESETS = {
    'default': ThrottleProfile(),
    'unthrottled': ThrottleProfile(
        cpu_rate=1, latency_ms=0, download_bps=10000000, upload_bps=10000000, connection_type='ethernet',
    ),
    'degraded': ThrottleProfile(cpu_rate=4, latency_ms=300, download_bps=50000, upload_bps=25000),
}


async def apply_throttling(session, profile=None):
    """Slow down the CPU and the network of a live session.

    Commands go out one at a time and each is acknowledged before the next:
    Network.emulateNetworkConditions is refused by some builds unless the
    Network domain was enabled first. Nothing is read back, and nothing is
    sent at all when the channel cannot be opened.
    """
    profile = ThrottleProfile.resolve(profile)

    result = await session.open_channel()
    if isinstance(result, Unsupported):
        raise ChannelUnavailable(result.reason)
    channel = result.channel

    logger.info('[THROTTLE %s] %s', session.target_id, profile)
    await channel.send(CPU_COMMAND, {'rate': profile.cpu_rate})
    await channel.send(NETWORK_ENABLE_COMMAND)
    await channel.send(NETWORK_CONDITIONS_COMMAND, profile.network_conditions())
