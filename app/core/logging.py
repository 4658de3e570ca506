"""
logging.py

애플리케이션 로깅 설정.

표준 logging 모듈의 루트 로거를 한 번만 구성하고,
각 모듈은 logging.getLogger(__name__)으로 자기 로거를 얻어 쓴다.

주요 기능:
- LOG_LEVEL(Settings) 기준 루트 로거 레벨 / 출력 형식 설정
- sqlalchemy.engine, httpx, httpcore 로거는 WARNING으로 낮춤
- create_app()이 여러 번 호출되어도 핸들러가 중복 등록되지 않음

관련 파일:
- app.main               : create_app()에서 configure_logging 호출
- app.services.audit_log : app.audit 로거로 감사 로그 기록

"""

import logging

_configured = False


def configure_logging(level: str = "INFO") -> None:
    """루트 로거를 한 번만 설정하고 시끄러운 서드파티 로거는 WARNING으로 낮춘다."""
    global _configured
    if _configured:
        return

    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    _configured = True
