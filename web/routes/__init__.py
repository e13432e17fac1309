"""
API 라우트 패키지

각 기능별 라우터 모듈:
- health: 헬스 체크
- funds: 잔액 / Movement / 레거시 마이그레이션
- closings: 일일 마감
"""
