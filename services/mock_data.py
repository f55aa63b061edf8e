"""Bundled sample school for development and offline starts.

Used by the state store when the spreadsheet backend cannot be reached
on startup (or when ``USE_MOCK_DATA`` is set).
"""

from models.school import AppState, Student, Teacher

STUDENTS = [
    {"id": 1, "no": 1, "nis": "1001", "name": "Ahmad Fauzi", "kelas": "7A", "gender": "L"},
    {"id": 2, "no": 2, "nis": "1002", "name": "Aisyah Putri", "kelas": "7A", "gender": "P"},
    {"id": 3, "no": 3, "nis": "1003", "name": "Budi Santoso", "kelas": "7A", "gender": "L"},
    {"id": 4, "no": 4, "nis": "1004", "name": "Citra Lestari", "kelas": "7A", "gender": "P"},
    {"id": 5, "no": 5, "nis": "1005", "name": "Dimas Pratama", "kelas": "7A", "gender": "L"},
    {"id": 6, "no": 6, "nis": "1006", "name": "Fatimah Zahra", "kelas": "7B", "gender": "P"},
    {"id": 7, "no": 7, "nis": "1007", "name": "Galih Ramadhan", "kelas": "7B", "gender": "L"},
    {"id": 8, "no": 8, "nis": "1008", "name": "Hana Safitri", "kelas": "7B", "gender": "P"},
    {"id": 9, "no": 9, "nis": "1009", "name": "Irfan Maulana", "kelas": "7B", "gender": "L"},
    {"id": 10, "no": 10, "nis": "1010", "name": "Nur Aini", "kelas": "7B", "gender": "P"},
]

TEACHERS = [
    {
        "id": 1,
        "no": 1,
        "name": "Siti Rahmawati",
        "nip": "198501012010012001",
        "subject": "Pendidikan Agama Islam",
        "classes": ["7A", "7B"],
    },
    {
        "id": 2,
        "no": 2,
        "name": "Hendra Wijaya",
        "nip": "198703152011011002",
        "subject": "Matematika",
        "classes": ["7A"],
    },
    {
        "id": 3,
        "no": 3,
        "name": "Siti Rahmawati",
        "nip": "198501012010012001",
        "subject": "Bahasa Arab",
        "classes": ["7B"],
    },
]


def sample_state() -> AppState:
    """A fresh state built from the sample roster; settings and history at defaults."""
    return AppState(
        students=[Student.model_validate(s) for s in STUDENTS],
        teachers=[Teacher.model_validate(t) for t in TEACHERS],
    )
