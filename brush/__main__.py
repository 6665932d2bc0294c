# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from brush.cli import main

raise SystemExit(main())
