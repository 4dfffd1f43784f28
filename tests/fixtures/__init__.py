"""테스트 공용 Fake/헬퍼 (외부 호출 없음)"""
