from lensprobe.utils.uri import path_to_uri


class TestPathToUri:
    def test_simple_path(self, temp_dir):
        test_file = temp_dir / "Foo.java"
        test_file.touch()
        uri = path_to_uri(test_file)
        assert uri.startswith("file:///")
        assert uri.endswith("/Foo.java")

    def test_string_path(self, temp_dir):
        uri = path_to_uri(str(temp_dir))
        assert uri == "file://" + str(temp_dir.resolve())

    def test_path_with_spaces(self, temp_dir):
        test_file = temp_dir / "my file.java"
        test_file.touch()
        uri = path_to_uri(test_file)
        assert uri.endswith("/my%20file.java")
