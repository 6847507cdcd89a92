"""컴포넌트 수명주기 모듈.

Component lifecycle module.
Components that need startup/shutdown work subclass ``Lifecycle`` and are
registered with a ``LifecycleRegistry`` when the application is composed.
Registration rejects anything that does not declare the capability, so a
missing hook is caught at composition time rather than probed for later.
"""

from abc import ABC, abstractmethod

import structlog

logger = structlog.get_logger(__name__)


class Lifecycle(ABC):
    """초기화/종료 훅을 가진 컴포넌트의 기반 클래스."""

    #: 로그에 표시될 컴포넌트 이름 (Component name used in logs)
    name: str = "component"

    @abstractmethod
    async def initialize(self) -> None:
        """컴포넌트를 시작합니다 — Start the component."""

    @abstractmethod
    async def shutdown(self) -> None:
        """컴포넌트를 정지합니다 — Stop the component; must be idempotent."""


class LifecycleRegistry:
    """등록 순서대로 시작하고 역순으로 종료하는 레지스트리.

    Starts components in registration order and stops them in reverse.
    """

    def __init__(self) -> None:
        self._components: list[Lifecycle] = []
        self._started: list[Lifecycle] = []

    def register(self, component: Lifecycle) -> Lifecycle:
        if not isinstance(component, Lifecycle):
            raise TypeError(f"{type(component).__name__} does not implement Lifecycle")
        self._components.append(component)
        return component

    @property
    def components(self) -> list[Lifecycle]:
        return list(self._components)

    async def start_all(self) -> None:
        """등록 순서대로 시작합니다.

        When a component fails to initialize, the ones already started are
        stopped in reverse order and the error is re-raised.
        """
        for component in self._components:
            try:
                await component.initialize()
            except Exception as exc:
                logger.error("Component initialization failed", component=component.name, error=str(exc))
                await self.stop_all()
                raise
            self._started.append(component)
            logger.info("Component initialized", component=component.name)

    async def stop_all(self) -> None:
        while self._started:
            component: Lifecycle = self._started.pop()
            try:
                await component.shutdown()
                logger.info("Component stopped", component=component.name)
            except Exception as exc:
                # 하나의 종료 실패가 나머지 종료를 막지 않도록 — keep stopping the rest
                logger.error("Component shutdown failed", component=component.name, error=str(exc))
