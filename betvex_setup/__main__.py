from gevent import monkey  # isort:skip # noqa

monkey.patch_all()  # isort:skip # noqa

from betvex_setup.main import main  # noqa: E402

if __name__ == "__main__":
    main()
