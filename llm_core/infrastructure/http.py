"""HTTP 传输句柄。

适配器要么自己创建 httpx.AsyncClient（owned，由适配器负责关闭），
要么借用调用方传入的客户端（borrowed，调用方负责关闭）。
这个所有权标记在构造时就确定，aclose() 只会释放 owned 的客户端。
"""

from dataclasses import dataclass
from typing import Optional

import httpx


@dataclass
class HttpClientHandle:
    client: httpx.AsyncClient
    owned: bool
    closed: bool = False

    @classmethod
    def create(cls, timeout: Optional[float] = None) -> "HttpClientHandle":
        # 与 Provider 直连，不读取系统代理配置
        return cls(client=httpx.AsyncClient(timeout=timeout, trust_env=False), owned=True)

    @classmethod
    def borrow(cls, client: httpx.AsyncClient, leave_open: bool = True) -> "HttpClientHandle":
        """借用外部客户端；leave_open=False 时把关闭责任转交给适配器。"""

        return cls(client=client, owned=not leave_open)

    async def aclose(self) -> None:
        if self.closed:
            return
        self.closed = True
        if self.owned:
            await self.client.aclose()
