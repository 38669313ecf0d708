"""
App layer: API 서버 (FastAPI).

역할:
- 요청 수신, 원본 확보, Cloudinary 업로드, Gemini 영역 탐지
- ⚠️ 변주/중복 회피 로직 없음 (core에 위임)
"""
