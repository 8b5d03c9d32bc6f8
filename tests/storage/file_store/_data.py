files = {
    "backup.info": b"[backrest]\nbackrest-format=5\n",
    "backup.info.copy": b"[backrest]\nbackrest-format=5\n",
    "archive/00000001.history": b"1\t0/3000000\tno recovery target\n",
    "archive/0000000100000000/000000010000000000000001": b"\x00" * 64,
    "archive/0000000100000000/000000010000000000000002": b"\x01" * 32,
    "backup/20261017-100000F/backup.manifest": b"[backup]\n",
    "backup/20261017-100000F/pg_data/PG_VERSION": b"16\n",
    "backup/20261017-100000F/pg_data/base/1/1259": b"\x02" * 128,
    "other/readme.txt": b"not part of the repository",
}

# Entries of a non-recursive list of each path
list_results = {
    "/": [
        ("archive", "path"),
        ("backup", "path"),
        ("other", "path"),
        ("backup.info", "file"),
        ("backup.info.copy", "file"),
    ],
    "/archive": [
        ("0000000100000000", "path"),
        ("00000001.history", "file"),
    ],
    "/backup/20261017-100000F": [
        ("pg_data", "path"),
        ("backup.manifest", "file"),
    ],
}
