from typing import Protocol, Optional
from onuprobe.models import OLTEndpoint, ONUInfo, LookupResult

class OLTSystem(Protocol):
    name: str
    endpoint: OLTEndpoint
    async def lookup(self, description: str) -> LookupResult: ...
    async def get_onu_info(self, description: str) -> Optional[ONUInfo]: ...
    async def close(self) -> None: ...
